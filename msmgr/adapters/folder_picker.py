"""Tk directory chooser implementing ``FolderPickerPort``."""

from __future__ import annotations

import os
from typing import Optional

from msmgr.domain.ports import FolderPickerPort


class TkFolderPicker(FolderPickerPort):
    """Open a native directory dialog on a hidden Tk root.

    The dialog is modal; it must be called from the thread that runs the
    event loop (Tk is not thread-safe).
    """

    def pick_folder(self, title: str, initial_dir: Optional[str]) -> Optional[str]:
        import tkinter
        from tkinter import filedialog

        start = initial_dir or ""
        if start and not os.path.isdir(start):
            home_dir = os.path.expanduser("~")
            start = home_dir if os.path.isdir(home_dir) else ""

        root = tkinter.Tk()
        root.withdraw()
        try:
            selected = filedialog.askdirectory(
                parent=root,
                initialdir=start or None,
                title=title,
                mustexist=False,
            )
        finally:
            root.destroy()
        if not selected:
            return None
        return os.path.normpath(selected)


__all__ = ["TkFolderPicker"]
