import os
import sys
import argparse
from datetime import datetime

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.settings_manager import ConfigManager, SettingsStore
from core.backup_engine import validate_archive
from core.database import DB_FILENAME, DatabaseManager
from core.errors import CommandError, parse_command_error
from utils.file_system import format_backup_name, format_size, is_backup_filename

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def check_integrity(backup_path, db_manager=None, out=print):
    """
    Validates every backup archive in ``backup_path`` and cross-checks the
    local history. Returns a summary dict.
    """
    report = {"valid": [], "corrupt": [], "missing": [], "orphaned": []}

    out("=== Backup Integrity Check ===")
    out(f"Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    out(f"Backup Path: {backup_path}\n")

    if not os.path.isdir(backup_path):
        out("ERROR: Backup path does not exist on disk!")
        report["corrupt"].append(backup_path)
        return report

    on_disk = sorted((f for f in os.listdir(backup_path) if is_backup_filename(f)), reverse=True)

    out("--- Checking Archives ---")
    for filename in on_disk:
        path = os.path.join(backup_path, filename)
        label = f"{format_backup_name(filename)} ({format_size(os.path.getsize(path))})"
        try:
            validate_archive(path)
        except CommandError as e:
            out(f"  [CORRUPT] {label}: {parse_command_error(e).message}")
            report["corrupt"].append(filename)
            continue
        out(f"  [OK] {label}")
        report["valid"].append(filename)

    if db_manager is not None:
        out("\n--- Checking History against Disk ---")
        entries = [
            e for e in db_manager.get_history(limit=10000)
            if e.get("destination") == "local" and (e.get("action") or "backup") == "backup"
        ]
        known = set()
        for entry in entries:
            filename = entry.get("filename")
            known.add(filename)
            stored = entry.get("location")
            if (stored and os.path.exists(stored)) or filename in on_disk:
                continue
            out(f"  [MISSING] {filename} (Expected at: {stored or backup_path})")
            report["missing"].append(filename)

        for filename in on_disk:
            if filename not in known:
                out(f"  [ORPHAN] {filename} (Found on disk, not in history)")
                report["orphaned"].append(filename)

    out("\n=== Summary ===")
    out(f"Archives:       {len(on_disk)}")
    out(f"Valid:          {len(report['valid'])}")
    out(f"Corrupt:        {len(report['corrupt'])}")
    out(f"Missing:        {len(report['missing'])}")
    out(f"Orphaned:       {len(report['orphaned'])}")
    return report


def parse_args(argv=None):
    data_dir = os.environ.get("AI_TOOLBOX_DATA_DIR") or BASE_DIR
    parser = argparse.ArgumentParser(description="Validate local backup archives.")
    parser.add_argument("--path", help="Backup folder (defaults to the configured local backup path)")
    parser.add_argument("--config", default=os.path.join(data_dir, "config", "backup_config.json"))
    parser.add_argument("--db-dir", default=os.path.join(data_dir, "database"),
                        help="Database directory holding the backup history")
    parser.add_argument("--no-history", action="store_true", help="Skip the history cross-check")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    backup_path = args.path
    if not backup_path:
        settings = SettingsStore(ConfigManager(args.config))
        settings.initialize()
        backup_path = settings.backup_config.local_backup_path
    if not backup_path:
        print("ERROR: No local backup path configured, pass --path.")
        return 2

    db_manager = None
    if not args.no_history and os.path.exists(os.path.join(args.db_dir, DB_FILENAME)):
        db_manager = DatabaseManager(args.db_dir)

    report = check_integrity(backup_path, db_manager)
    if report["corrupt"]:
        print("\nERROR: Corrupt archives found.")
        return 1
    if report["missing"] or report["orphaned"]:
        print("\nWARNING: Inconsistencies found.")
    else:
        print("\nSUCCESS: All archives are valid.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
