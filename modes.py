"""Saved chat modes and their on-disk encoding.

A mode is stored as one pipe-delimited string in the config file::

    mode_1 = "<model>|<prompt>|temp=0.8|top_k=40|...|<name>|<description>"

Segment 0 is always the model path. Segment 1 is the prompt path unless it
contains ``=``, in which case the mode has no prompt and uses the blank
prompt. After the paths, segments with ``=`` are parameters and the last
two without ``=`` are the name and the description. Older entries carry
fewer parameters; every save writes the full parameter set in a fixed
order.

There is no escaping, so ``|`` can never appear inside a value. Encoding
refuses such values instead of writing a line that reads back wrong.
"""

import logging
import os
from dataclasses import dataclass, field

from config import (
    parse_bool,
    parse_int,
    read_document,
    read_field,
    read_indexed_fields,
    write_document,
)
from errors import ModeFormatError
from paths import resolve_model_path, resolve_prompt_path

logger = logging.getLogger(__name__)

SEPARATOR = "|"
FALLBACK_THREAD_COUNT = 3


def detect_cpu_count():
    """Return the CPU count, or None if the OS won't say."""
    return os.cpu_count()


def default_thread_count():
    """One thread fewer than the CPU count, never below 1."""
    count = detect_cpu_count()
    if count is None:
        logger.warning(
            "Could not detect CPU count, using default value of %d",
            FALLBACK_THREAD_COUNT,
        )
        return FALLBACK_THREAD_COUNT
    return max(count - 1, 1)


def validate_thread_count(threads):
    """Clamp a thread count to between 1 and the CPU count."""
    max_threads = default_thread_count() + 1
    if threads < 1:
        logger.warning("Thread count too low, using minimum of 1")
        return 1
    if threads > max_threads:
        logger.warning(
            "Thread count exceeds CPU count, using maximum of %d", max_threads
        )
        return max_threads
    return threads


def _format_float(value):
    return repr(float(value))


def _format_bool(value):
    return "true" if value else "false"


def _parse_float(value):
    try:
        return float(value)
    except ValueError:
        return None


def _parse_signed_int(value):
    try:
        return int(value)
    except ValueError:
        return None


@dataclass
class SamplingParameters:
    """Generation settings passed to llama-cli."""

    temperature: float = 0.8
    top_k: int = 40
    top_p: float = 0.9
    context_size: int = 2000
    thread_count: int = field(default_factory=default_thread_count)
    gpu_layers: int = 0
    interactive_first: bool = True

    # token key -> (attribute, parser, formatter), in the order they are written
    TOKENS = {
        "temp": ("temperature", _parse_float, _format_float),
        "top_k": ("top_k", _parse_signed_int, str),
        "top_p": ("top_p", _parse_float, _format_float),
        "ctx_size": ("context_size", _parse_signed_int, str),
        "threads": ("thread_count", _parse_signed_int, str),
        "gpu_layers": ("gpu_layers", _parse_signed_int, str),
        "interactive_first": ("interactive_first", parse_bool, _format_bool),
    }

    def apply(self, key, value):
        """Set the parameter named by token ``key`` from its string value.

        Unknown keys are ignored. A value that does not parse leaves the
        parameter unchanged. Returns True if the parameter was set.
        """
        entry = self.TOKENS.get(key)
        if entry is None:
            logger.debug("Ignoring unknown mode parameter '%s'", key)
            return False
        attr, parse, _ = entry
        parsed = parse(value)
        if parsed is None:
            logger.warning("Invalid value for mode parameter %s=%s", key, value)
            return False
        if attr == "thread_count":
            parsed = validate_thread_count(parsed)
        setattr(self, attr, parsed)
        return True

    def tokens(self):
        """Return ``key=value`` strings in canonical order."""
        return [
            f"{key}={fmt(getattr(self, attr))}"
            for key, (attr, _, fmt) in self.TOKENS.items()
        ]


@dataclass
class ModeRecord:
    """One launch configuration: model, prompt and sampling parameters."""

    model_path: str
    prompt_path: str
    parameters: SamplingParameters = field(default_factory=SamplingParameters)
    name: str = ""
    description: str = ""


def split_segments(text):
    """Split a mode string into paths, parameter tokens and trailing labels.

    Returns ``(model, prompt, params, labels)`` where ``prompt`` is None
    when segment 1 is a parameter, ``params`` is a list of ``(key, value)``
    and ``labels`` holds the remaining segments without ``=`` in order.

    Raises:
        ModeFormatError: If there are fewer than two segments.
    """
    segments = text.split(SEPARATOR)
    if len(segments) < 2:
        raise ModeFormatError(
            f"expected at least 2 '{SEPARATOR}'-separated parts, "
            f"got {len(segments)}"
        )

    model = segments[0]
    if "=" in segments[1]:
        prompt = None
        rest = segments[1:]
    else:
        prompt = segments[1]
        rest = segments[2:]

    params = []
    labels = []
    for segment in rest:
        key, sep, value = segment.partition("=")
        if sep:
            params.append((key, value))
        else:
            labels.append(segment)
    return model, prompt, params, labels


def decode_mode(text, home, prompts_dir, blank_prompt):
    """Build a ModeRecord from a stored mode string.

    Relative model paths are joined to ``home`` and relative prompt paths
    to ``prompts_dir``. A mode without a prompt gets ``blank_prompt``.

    Raises:
        ModeFormatError: If the string has fewer than two segments.
    """
    raw_model, raw_prompt, params, labels = split_segments(text)

    model_path = resolve_model_path(raw_model, home)
    if raw_prompt is None:
        prompt_path = str(blank_prompt)
    else:
        prompt_path = resolve_prompt_path(raw_prompt, prompts_dir)

    parameters = SamplingParameters()
    for key, value in params:
        parameters.apply(key, value)

    name = description = ""
    if len(labels) >= 2:
        name, description = labels[-2], labels[-1]
    else:
        logger.warning("Mode entry is missing a name or description: %s", text)

    return ModeRecord(
        model_path=model_path,
        prompt_path=prompt_path,
        parameters=parameters,
        name=name,
        description=description,
    )


def check_encodable(record):
    """Raise ModeFormatError if ``record`` cannot be stored faithfully."""
    fields = {
        "model path": record.model_path,
        "prompt path": record.prompt_path,
        "name": record.name,
        "description": record.description,
    }
    for label, value in fields.items():
        for bad in (SEPARATOR, '"', "\n", "\r"):
            if bad in value:
                raise ModeFormatError(f"{label} may not contain {bad!r}: {value!r}")
    for label in ("prompt path", "name", "description"):
        if "=" in fields[label]:
            raise ModeFormatError(f"{label} may not contain '=': {fields[label]!r}")
    if not record.model_path:
        raise ModeFormatError("model path is required")
    if not record.prompt_path:
        raise ModeFormatError("prompt path is required")


def encode_mode(record):
    """Return the canonical mode string for ``record``.

    Raises:
        ModeFormatError: If a field contains characters the format can't hold.
    """
    check_encodable(record)
    segments = [record.model_path, record.prompt_path]
    segments.extend(record.parameters.tokens())
    segments.extend([record.name, record.description])
    return SEPARATOR.join(segments)


class ModeStore:
    """The saved modes in the config file.

    Every read goes back to the file, and every save rewrites it whole.
    """

    def __init__(self, paths):
        self.paths = paths

    @property
    def config_file(self):
        return self.paths.config_file

    def decode(self, text):
        return decode_mode(
            text,
            home=self.paths.home,
            prompts_dir=self.paths.prompts_dir,
            blank_prompt=self.paths.blank_prompt,
        )

    def entries(self):
        """Return ``(N, record)`` for every ``mode_<N>`` that decodes, ordered by N.

        A malformed entry is logged and skipped; the rest still load.
        """
        entries = []
        for number, text in read_indexed_fields(self.config_file, "mode"):
            try:
                entries.append((number, self.decode(text)))
            except ModeFormatError as e:
                logger.warning("Skipping malformed mode_%d: %s", number, e)
        if not entries:
            logger.info("No valid modes found in %s", self.config_file)
        return entries

    def list_all(self):
        """Return every mode that decodes, ordered by its ``mode_<N>`` number."""
        return [record for _, record in self.entries()]

    def get(self, number):
        """Return the mode at 1-based menu position ``number``, or None."""
        modes = self.list_all()
        if 1 <= number <= len(modes):
            return modes[number - 1]
        return None

    def get_by_number(self, number):
        """Return the mode stored under key ``mode_<number>``, or None.

        If a hand-edited file repeats a key, the last entry wins, since
        that is the one ``append`` wrote.
        """
        found = None
        for key, record in self.entries():
            if key == number:
                found = record
        return found

    def number_at(self, position):
        """Return the ``mode_<N>`` number of menu position ``position``, or None."""
        entries = self.entries()
        if 1 <= position <= len(entries):
            return entries[position - 1][0]
        return None

    def position_of(self, number):
        """Return the menu position of key ``mode_<number>``, or None."""
        position = None
        for index, (key, _) in enumerate(self.entries(), start=1):
            if key == number:
                position = index
        return position

    @staticmethod
    def next_index(text):
        """Number for the next mode: one more than the ``mode_`` lines.

        This counts raw lines, valid or not, so it can differ from
        ``len(list_all())`` when the file has malformed entries.
        """
        count = sum(1 for line in text.splitlines() if line.startswith("mode_"))
        return count + 1

    def append(self, record, make_default=False):
        """Add ``record`` as a new ``mode_<N>`` entry and return ``N``.

        Raises:
            ModeFormatError: If the record cannot be encoded. Nothing is written.
            ConfigError: If the config file cannot be read or written.
        """
        encoded = encode_mode(record)
        text = read_document(self.config_file)
        number = self.next_index(text)

        if make_default:
            text = self._with_default(text, number)

        if text and not text.endswith("\n"):
            text += "\n"
        text += f"\n# Mode {number} - {record.name} - {record.description}\n"
        text += f'mode_{number} = "{encoded}"\n'

        write_document(self.config_file, text)
        logger.info("Saved mode_%d (%s) to %s", number, record.name, self.config_file)
        return number

    def get_default_index(self):
        """Return the ``default_mode`` number, or None if unset or not a number.

        The number is a ``mode_<N>`` key, the same ``N`` that ``append``
        returns, not a menu position.
        """
        return parse_int(read_field(self.config_file, "default_mode"))

    def set_default_index(self, number):
        """Point ``default_mode`` at key ``mode_<number>``.

        Raises:
            ConfigError: If the config file cannot be read or written.
        """
        text = read_document(self.config_file)
        write_document(self.config_file, self._with_default(text, number))

    @staticmethod
    def _with_default(text, number):
        lines = [
            line
            for line in text.splitlines()
            if line.split("=", 1)[0].strip() != "default_mode"
        ]
        return "\n".join(lines) + f"\ndefault_mode = {number}\n"
