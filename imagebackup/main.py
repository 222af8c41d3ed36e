import argparse
import sys
from dataclasses import dataclass
from typing import Optional

from imagebackup.domain import BackupJob, BackupMode
from imagebackup.logging import LoggerFactory, setup_logging
from imagebackup.services.backup import run_backup
from imagebackup.services.host import HostServices
from imagebackup.storage.exceptions import ImageBackupError, UserAbortError

# Two flag/value pairs
REQUIRED_TOKEN_COUNT = 4
HELP_FLAGS = ("-h", "--help")
VALUE_FLAGS = ("-s", "-d", "-f", "-i")

HELP_TEXT = """
Usage: imagebackup -s <source_disk> -d <destination_disk> -f <folder> -i <image>

Options:
  -s <source_disk>           Source disk to backup
  -d <destination_disk>      Destination disk to backup
  -f <folder>                Destination folder to backup
  -i <image>                 Image file to backup
  -h                         Show this help and exit

Example:
 disk to disk backup: imagebackup -s /dev/sda -d /dev/sdb
 disk to folder backup: imagebackup -s /dev/sda -f /mnt/backup
 image to disk backup: imagebackup -i /mnt/image.img -d /dev/sdb
"""

log = LoggerFactory.for_cli()


class UsageError(Exception):
    """Malformed command line."""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


@dataclass(frozen=True)
class BackupOptions:
    source_disk: Optional[str] = None
    destination_disk: Optional[str] = None
    folder: Optional[str] = None
    image: Optional[str] = None


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="imagebackup", add_help=False)
    parser.add_argument("-s", dest="source_disk", metavar="<source_disk>")
    parser.add_argument("-d", dest="destination_disk", metavar="<destination_disk>")
    parser.add_argument("-f", dest="folder", metavar="<folder>")
    parser.add_argument("-i", dest="image", metavar="<image>")
    return parser


def print_help(stream=None) -> None:
    print(HELP_TEXT, file=stream or sys.stdout)


def _attach_dash_values(argv) -> list:
    # argparse reads "-f -backups" as a missing value. Every flag takes one
    # argument, so the token after it is its value, whatever it starts with.
    tokens = []
    index = 0
    while index < len(argv):
        token = argv[index]
        if token in VALUE_FLAGS and index + 1 < len(argv) and argv[index + 1].startswith("-"):
            tokens.append(f"{token}{argv[index + 1]}")
            index += 2
            continue
        tokens.append(token)
        index += 1
    return tokens


def parse_options(argv) -> BackupOptions:
    """Parse flag/value pairs. Raises UsageError on unknown or incomplete flags."""
    args = build_parser().parse_args(_attach_dash_values(argv))
    return BackupOptions(
        source_disk=args.source_disk,
        destination_disk=args.destination_disk,
        folder=args.folder,
        image=args.image,
    )


def echo_options(options: BackupOptions) -> None:
    if options.source_disk:
        log.info(f"== Source disk is {options.source_disk} ==")
    if options.destination_disk:
        log.info(f"== Destination disk is {options.destination_disk} ==")
    if options.folder:
        log.info(f"== Destination folder is {options.folder} ==")
    if options.image:
        log.info(f"== Image file is {options.image} ==")


def resolve_mode(options: BackupOptions) -> Optional[BackupMode]:
    """Pick the mode for the supplied options, or None if no pairing fits."""
    if options.source_disk and options.destination_disk:
        return BackupMode.DISK_TO_DISK
    if options.source_disk and options.folder:
        return BackupMode.DISK_TO_FOLDER
    if options.image and options.destination_disk:
        return BackupMode.IMAGE_TO_DISK
    return None


def main(argv=None, host: Optional[HostServices] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    setup_logging()

    if any(token in HELP_FLAGS for token in argv):
        print_help()
        return 0
    if len(argv) != REQUIRED_TOKEN_COUNT:
        print_help()
        return 1

    try:
        options = parse_options(argv)
    except UsageError as error:
        log.error(f"== Invalid option: {error} ==")
        print_help()
        return 1
    echo_options(options)

    mode = resolve_mode(options)
    if mode is None:
        print_help()
        return 1

    host = host or HostServices()
    job = BackupJob.from_options(
        mode,
        source_disk=options.source_disk,
        destination_disk=options.destination_disk,
        folder=options.folder,
        image=options.image,
        today=host.today(),
    )
    log.debug(f"Resolved {job.mode.value}: {job.source.path} -> {job.output_path}")

    try:
        run_backup(job, host)
    except UserAbortError as error:
        log.warning(str(error))
        return 1
    except ImageBackupError as error:
        log.error(str(error))
        return 1
    except KeyboardInterrupt:
        log.error("Interrupted, aborting")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
