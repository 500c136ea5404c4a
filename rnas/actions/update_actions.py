"""update: pull the latest rnas from its git checkout."""

from __future__ import annotations

from rnas import __version__
from rnas.app.context import RnasContext
from rnas.logging import operation_context
from rnas.services.update import run_update
from rnas.ui import console


def update(ctx: RnasContext) -> None:
    with operation_context("update", version=__version__):
        pulled = run_update()
    if not pulled:
        print(f"RNAS {__version__} is up to date")
        return
    console.print_header("RNAS Updated Successfully!")
    console.print_field("Previous Version", __version__)
    console.print_field("Commits Pulled", pulled)
    print("Run 'rnas status' to check the new version")
