"""Command-line interface for process instance files."""

import argparse
import logging
import sys
from pathlib import Path

from filestore.config import DEFAULT_CONFIG_PATH, Config
from filestore.exceptions import StoredFileNotFoundError
from filestore.factory import form_data_file_storage_service
from filestore.metadata import FileData, FileMetadata
from filestore.service import FormDataFileStorageService
from filestore.utils import calculate_checksum, detect_mime_type, format_size


def print_metadata(metadata_list: list[FileMetadata]) -> None:
    """Print metadata as a table."""
    print(
        f"{'Id':<40} | {'Filename':<30} | {'Type':<25} | {'Size':>8} | "
        f"{'Field':<15} | {'Form key':<15}"
    )
    print("=" * 150)
    for metadata in metadata_list:
        print(
            f"{metadata.id or '-':<40} | {metadata.filename or '-':<30} | "
            f"{metadata.content_type or '-':<25} | {format_size(metadata.content_length):>8} | "
            f"{metadata.field_name or '-':<15} | {metadata.form_key or '-':<15}"
        )


def cmd_put(args, service: FormDataFileStorageService):
    """Upload a file to a process instance."""
    path = Path(args.path)
    with open(path, "rb") as f:
        metadata = FileMetadata.build(
            content_type=args.content_type or detect_mime_type(path.name),
            id=args.file_id,
            checksum=calculate_checksum(f),
            filename=path.name,
            field_name=args.field_name,
            form_key=args.form_key,
        )
        result = service.save_by_process_instance_id_and_id(
            args.process_instance_id, args.file_id, FileData(metadata=metadata, content=f)
        )
    print(f"Saved {path.name} ({format_size(result.content_length)}) as {args.file_id}")


def cmd_get(args, service: FormDataFileStorageService):
    """Download a file of a process instance."""
    file_data = service.load_by_process_instance_id_and_id(args.process_instance_id, args.file_id)
    # Stored filename is untrusted: keep only its last component
    stored_name = Path(file_data.metadata.filename or "").name
    if stored_name in (".", ".."):
        stored_name = ""
    output = args.output or stored_name or args.file_id
    with open(output, "wb") as f:
        f.write(file_data.content.read())
    print(f"Written {format_size(file_data.metadata.content_length)} to {output}")


def cmd_ls(args, service: FormDataFileStorageService):
    """List files of a process instance."""
    result = service.get_metadata_by_process_instance_id(args.process_instance_id)
    if not result:
        print(f"No files attached to process instance {args.process_instance_id}")
        return
    print_metadata(result)


def cmd_meta(args, service: FormDataFileStorageService):
    """Show metadata of selected files."""
    print_metadata(service.get_metadata(args.process_instance_id, args.file_ids))


def cmd_rm(args, service: FormDataFileStorageService):
    """Delete every file of a process instance."""
    if not args.yes:
        response = input(
            f"\nDelete all files of process instance {args.process_instance_id}?\n"
            f"This will permanently delete them. Continue? [y/N]: "
        )
        if response.lower() not in ("y", "yes"):
            print("Cancelled")
            return

    service.delete_by_process_instance_id(args.process_instance_id)
    print(f"Deleted files of process instance {args.process_instance_id}")


COMMANDS = {
    "put": cmd_put,
    "get": cmd_get,
    "ls": cmd_ls,
    "meta": cmd_meta,
    "rm": cmd_rm,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Store and retrieve files attached to process instances"
    )
    parser.add_argument(
        "--config", "-c", default=DEFAULT_CONFIG_PATH, help="Path to the TOML configuration"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log storage operations")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    put_parser = subparsers.add_parser("put", help="Upload a file")
    put_parser.add_argument("process_instance_id", help="Process instance id")
    put_parser.add_argument("file_id", help="File id")
    put_parser.add_argument("path", help="File to upload")
    put_parser.add_argument("--content-type", help="MIME type (default: guessed from filename)")
    put_parser.add_argument("--field-name", help="Form field the file belongs to")
    put_parser.add_argument("--form-key", help="Form the file belongs to")

    get_parser = subparsers.add_parser("get", help="Download a file")
    get_parser.add_argument("process_instance_id", help="Process instance id")
    get_parser.add_argument("file_id", help="File id")
    get_parser.add_argument("--output", "-o", help="Output path (default: stored filename)")

    ls_parser = subparsers.add_parser("ls", help="List files of a process instance")
    ls_parser.add_argument("process_instance_id", help="Process instance id")

    meta_parser = subparsers.add_parser("meta", help="Show metadata of files")
    meta_parser.add_argument("process_instance_id", help="Process instance id")
    meta_parser.add_argument("file_ids", nargs="+", help="File ids")

    rm_parser = subparsers.add_parser("rm", help="Delete all files of a process instance")
    rm_parser.add_argument("process_instance_id", help="Process instance id")
    rm_parser.add_argument("--yes", "-y", action="store_true", help="Delete without confirmation")

    return parser


def main(argv: list[str] | None = None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Load configuration
    try:
        config = Config.from_file(args.config)
        service = form_data_file_storage_service(config)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    # Execute command
    try:
        COMMANDS[args.command](args, service)
    except StoredFileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\n\nError: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
