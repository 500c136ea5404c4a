"""Command handlers for the rnas CLI.

Each module groups the verbs of one area. Handlers take an RnasContext,
print to the console, prompt where the command is interactive, and raise
RnasError subclasses for the dispatcher to report.
"""
