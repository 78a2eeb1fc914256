"""Native file/folder pickers (tkinter). Each returns None when cancelled or unavailable."""
import logging

logger = logging.getLogger(__name__)


def _run_dialog(open_dialog):
    import tkinter as tk
    root = tk.Tk()
    root.withdraw()
    root.attributes('-topmost', True)
    try:
        return open_dialog()
    finally:
        root.destroy()


def pick_file(title=None, filetypes=None):
    try:
        from tkinter import filedialog
        path = _run_dialog(lambda: filedialog.askopenfilename(
            title=title or "", filetypes=filetypes or [("All Files", "*.*")]
        ))
    except Exception as e:
        # No display / Tk missing: behave like a cancelled dialog
        logger.error(f"File picker failed: {e}")
        return None
    return path or None


def pick_folder(title=None):
    try:
        from tkinter import filedialog
        path = _run_dialog(lambda: filedialog.askdirectory(title=title or ""))
    except Exception as e:
        logger.error(f"Folder picker failed: {e}")
        return None
    return path or None
