#!/usr/bin/env python3
"""Turn a directory into prompt text: a file tree plus file contents.

Usage:
    python dir2prompt.py path/to/project
    python dir2prompt.py path/to/project -p prompts/review.txt
    python dir2prompt.py path/to/project -o combined.txt
"""

import argparse
import sys
import time
from dataclasses import dataclass
from pathlib import Path

from errors import PathError

TEXT_EXTENSIONS = {
    "txt", "md", "rs", "py", "js", "json", "toml", "yaml", "yml",
    "css", "html", "htm", "xml", "csv", "log", "sh", "bash",
    "c", "cpp", "h", "hpp", "java", "go", "rb", "pl", "php",
}


@dataclass
class DirectoryScan:
    tree_structure: str = ""
    file_contents: str = ""


def is_likely_text_file(path):
    return Path(path).suffix.lstrip(".").lower() in TEXT_EXTENSIONS


def scan_directory(path, prefix=""):
    """Draw the tree under ``path`` and collect the text files' contents.

    Entries are sorted by path so the output is stable.

    Raises:
        PathError: If ``path`` or a subdirectory cannot be read.
    """
    path = Path(path)
    if not path.exists():
        raise PathError(f"Directory not found: {path}")
    try:
        entries = sorted(path.iterdir())
    except OSError as e:
        raise PathError(f"Failed to read directory {path}: {e}") from e

    scan = DirectoryScan()
    for i, entry in enumerate(entries):
        is_last = i == len(entries) - 1
        branch = "└──" if is_last else "├──"
        scan.tree_structure += f"{prefix}{branch} {entry.name}\n"

        if entry.is_dir():
            child = scan_directory(entry, prefix + ("    " if is_last else "│   "))
            scan.tree_structure += child.tree_structure
            scan.file_contents += child.file_contents
        elif is_likely_text_file(entry):
            try:
                content = entry.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            scan.file_contents += f"\n=== {entry.name} ===\n{content}\n"

    return scan


def combine(original_prompt, scan):
    return (
        f"{original_prompt}\n\n"
        f"Directory Structure:\n{scan.tree_structure}\n\n"
        f"File Contents:{scan.file_contents}\n"
    )


def create_combined_prompt(original_prompt_path, directory, prompts_dir):
    """Write a new prompt file: the original prompt followed by ``directory``.

    The file goes into ``prompts_dir`` as combined_prompt_<timestamp>.txt.

    Returns:
        The path of the new prompt file as a string.

    Raises:
        PathError: If the prompt or directory cannot be read, or the new
            file cannot be written.
    """
    try:
        original = Path(original_prompt_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise PathError(f"Failed to read original prompt: {e}") from e

    scan = scan_directory(directory)

    combined_path = Path(prompts_dir) / f"combined_prompt_{int(time.time())}.txt"
    try:
        combined_path.parent.mkdir(parents=True, exist_ok=True)
        combined_path.write_text(combine(original, scan), encoding="utf-8")
    except OSError as e:
        raise PathError(f"Failed to write combined prompt: {e}") from e
    return str(combined_path)


def main():
    parser = argparse.ArgumentParser(
        description="Print a directory tree and its text files as a prompt"
    )
    parser.add_argument("directory", help="Directory to scan")
    parser.add_argument("-p", "--prompt", help="Prompt file to put in front")
    parser.add_argument("-o", "--output", help="Output file path (default: stdout)")
    args = parser.parse_args()

    original = ""
    if args.prompt:
        try:
            original = Path(args.prompt).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            print(f"Error: cannot read prompt: {e}", file=sys.stderr)
            sys.exit(1)

    try:
        scan = scan_directory(args.directory)
    except PathError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    text = combine(original, scan)

    if args.output:
        output_path = Path(args.output)
        output_path.write_text(text, encoding="utf-8")
        print(f"Written to {output_path}", file=sys.stderr)
    else:
        sys.stdout.write(text)


if __name__ == "__main__":
    main()
