"""Copy chunks from an input file, with flexible ranges description."""
import argparse
import contextlib
import os
import re
import sys
from collections import namedtuple

__version__ = '0.4.1'

# Offsets follow 64-bit signed file offset semantics.
OFF_BITS = 64
OFF_MIN = -(1 << (OFF_BITS - 1))
OFF_MAX = (1 << (OFF_BITS - 1)) - 1

BLOCK_SIZE = 512 * 1024

# -p prints a percentage every PROGRESS_PER percent and '.' every PROGRESS_DOT
PROGRESS_PER = 20
PROGRESS_DOT = 2

UNITS = {
    'k': 1000,
    'm': 1000 * 1000,
    'K': 1024,
    'M': 1024 * 1024,
}

DIGITS = '0123456789'


class ChunksError(Exception):
    """Base class for every error which aborts a run."""

    def __init__(self, message, descriptor=None):
        super().__init__(message)
        self.descriptor = descriptor


class MalformedDescriptor(ChunksError):
    pass


class ArithmeticOverflow(ChunksError):
    pass


class SeekFailure(ChunksError):
    pass


class ShortReadOrWrite(ChunksError):
    pass


class Range(namedtuple('Range', ['start', 'stop'])):
    """Resolved half-open interval [start, stop) of the input file."""
    __slots__ = ()

    @property
    def length(self):
        return self.stop - self.start


def _trunc_div(a, b):
    # Division rounding toward zero, as the bound checks below expect.
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def add(a, b):
    """Return a + b, or raise ArithmeticOverflow if it leaves the offset range."""
    if (b > 0 and a > OFF_MAX - b) or (b < 0 and a < OFF_MIN - b):
        raise ArithmeticOverflow(f"{a} + {b} overflows")
    return a + b


def multiply(a, b):
    if a > 0:
        if b > 0:
            overflow = a > _trunc_div(OFF_MAX, b)
        else:
            overflow = b < _trunc_div(OFF_MIN, a)
    elif b > 0:
        overflow = a < _trunc_div(OFF_MIN, b)
    else:
        overflow = a != 0 and b < _trunc_div(OFF_MAX, a)

    if overflow:
        raise ArithmeticOverflow(f"{a} * {b} overflows")
    return a * b


def apply_suffix(value, suffix):
    try:
        mult = UNITS[suffix]
    except KeyError:
        raise MalformedDescriptor(f"unknown unit '{suffix}'") from None
    return multiply(value, mult)


def parse_numeral(text, allow_negative=False):
    """Parse decimal digits, optionally followed by a single unit suffix.

    If allow_negative, the digits may be preceded by '-'. Values outside
    [OFF_MIN, OFF_MAX] are rejected rather than wrapped.
    """
    negative = text.startswith('-')
    digits = text[1:] if negative else text
    if negative and not allow_negative:
        raise MalformedDescriptor(f"unexpected '-' in '{text}'")
    if not digits:
        raise MalformedDescriptor(f"missing number in '{text}'")

    value = 0
    try:
        for pos, ch in enumerate(digits):
            if ch not in DIGITS:
                # A unit is only valid as the last character, after a digit.
                if pos == 0 or pos != len(digits) - 1:
                    raise MalformedDescriptor(f"invalid character '{ch}' in '{text}'")
                return apply_suffix(value, ch)

            digit = DIGITS.index(ch)
            value = add(multiply(value, 10), -digit if negative else digit)
    except ArithmeticOverflow as e:
        raise MalformedDescriptor(f"'{text}' is out of range") from e

    return value


def _crop(value, low, high):
    return max(low, min(high, value))


def _resolve_from(in_size, prev_to, text):
    if not text:
        return 0

    if text.startswith('-'):
        # Cannot overflow: in_size is a real file size.
        start = add(in_size, parse_numeral(text, allow_negative=True))
    elif text.startswith('+'):
        skip = parse_numeral(text[1:], allow_negative=True)
        try:
            start = add(prev_to, skip)
        except ArithmeticOverflow:
            start = OFF_MAX
    else:
        start = parse_numeral(text)

    return _crop(start, 0, in_size)


def _resolve_to(in_size, start, text):
    if not text:
        return in_size

    if text.startswith('-'):
        stop = add(in_size, parse_numeral(text, allow_negative=True))
    elif text.startswith('+'):
        length = parse_numeral(text[1:])
        try:
            stop = add(start, length)
        except ArithmeticOverflow:
            stop = OFF_MAX
    else:
        stop = parse_numeral(text)

    return _crop(stop, start, in_size)


def resolve_range(in_size, prev_to, descriptor):
    """Resolve a [FROM]:[TO] range string into a Range of the input file.

    FROM is START, -BACKSTART, or +SKIP (relative to prev_to, may be
    negative). TO is END, -BACKEND, or +LENGTH (relative to the resolved
    FROM, never negative). An omitted FROM is 0 and an omitted TO is
    in_size. FROM is cropped to [0, in_size] and TO to [FROM, in_size], so
    a TO before FROM yields an empty range, never a reversed one.

    A SKIP or LENGTH which overflows the offset range clamps to OFF_MAX
    (there is simply nothing left to copy), while an overflow relative to
    the end of file raises ArithmeticOverflow: it is unreachable for a real
    file size, and that asymmetry is intentional.
    """
    from_text, sep, to_text = descriptor.partition(':')
    try:
        if not sep:
            raise MalformedDescriptor("missing ':' separator")
        start = _resolve_from(in_size, prev_to, from_text)
        stop = _resolve_to(in_size, start, to_text)
    except ChunksError as e:
        e.descriptor = descriptor
        raise

    return Range(start, stop)


def iter_ranges(in_size, descriptors):
    prev_to = 0
    for descriptor in descriptors:
        rng = resolve_range(in_size, prev_to, descriptor)
        prev_to = rng.stop
        yield rng


def plan_ranges(in_size, descriptors):
    """Return the resolved ranges and the expected output size."""
    ranges = list(iter_ranges(in_size, descriptors))
    return ranges, sum(rng.length for rng in ranges)


def copy_ranges(in_file, out_file, in_size, descriptors, expected_size,
                progress=None, block_size=BLOCK_SIZE):
    """Copy the ranges described by descriptors from in_file to out_file.

    progress, if given, is called after every block with (bytes copied so
    far, expected_size). Returns the number of bytes copied.
    """
    copied = 0
    if not expected_size:
        return copied

    for rng in iter_ranges(in_size, descriptors):
        try:
            pos = in_file.seek(rng.start)
        except (OSError, ValueError) as e:
            raise SeekFailure(f"cannot seek input file to offset {rng.start}") from e
        if pos != rng.start:
            raise SeekFailure(f"cannot seek input file to offset {rng.start}")

        remaining = rng.length
        while remaining:
            want = min(remaining, block_size)
            try:
                buf = in_file.read(want)
            except OSError as e:
                raise ShortReadOrWrite("cannot read from input file") from e
            if buf is None or len(buf) != want:
                got = 0 if buf is None else len(buf)
                raise ShortReadOrWrite(
                    f"cannot read from input file (got {got} of {want} bytes "
                    f"at offset {rng.stop - remaining})")

            try:
                written = out_file.write(buf)
            except OSError as e:
                raise ShortReadOrWrite("cannot write to output file") from e
            if written != want:
                raise ShortReadOrWrite(
                    f"cannot write to output file (wrote {written} of {want} bytes)")

            remaining -= want
            copied += want
            if progress:
                progress(copied, expected_size)

    return copied


class ProgressPrinter:
    """Print a percentage every PROGRESS_PER percent, and '.' every PROGRESS_DOT."""

    def __init__(self, stream=None):
        self.stream = stream if stream is not None else sys.stderr
        self.done = 0

    def __call__(self, done, total):
        percent = done * 100 // total
        prev_percent = self.done * 100 // total
        self.done = done

        if percent // PROGRESS_PER != prev_percent // PROGRESS_PER:
            self.stream.write(f" {percent}% ")
        elif percent // PROGRESS_DOT != prev_percent // PROGRESS_DOT:
            self.stream.write(".")
        self.stream.flush()

    def finish(self, total):
        if not total:
            self.stream.write(" 100% ")
        self.stream.write("\n")
        self.stream.flush()


RANGES_HELP = f"""\
Version {__version__}
Values supported: {OFF_BITS} bit ({OFF_MIN} - {OFF_MAX}).

If OUT_FILE is '-' (without quotes), the output will go to stdout.
Every argument after OUT_FILE is a RANGE, so -o OUT_FILE must come before the ranges.

Ranges:
  Ranges may overlap, but will NOT be combined. Ranges are independently copied.
  The output will include the ranges in the order they appear.
  RANGE is in the form of [FROM]:[TO] (without spaces), where:
    FROM is START or +SKIP
    TO   is END   or +LENGTH
  IN_SIZE - the file size of IN_FILE.
  START/END: offset at IN_FILE. If negative, then relative to IN_SIZE.
  SKIP: relative to previous range's TO, may be negative (e.g. '0:50 +-5:100').
  LENGTH: relative to FROM, never negative.
  For convenience, values may use a unit k/m (1000 based) or K/M (1024 based).
  Once resolved, FROM and TO are cropped to [0 .. IN_SIZE] on each RANGE.
  If FROM is omitted, 0 is used. If TO is omitted, IN_SIZE is used.
  If (FROM >= TO), the range is ignored (will not reverse data).

Sample ranges:
  (up to) 200 bytes from offset 50: '50:250' or '50:+200'
  The first 50 bytes of the file: '0:50' or ':50'
  From offset 50 to EOF: '50:' or '50:-0'
  Everything except the last 50 bytes: '0:-50' or ':-50'
  Last 100 bytes of the file: '-100:' or '-100:-0'
  Take first 100 bytes, skip 2, and take another 100: '0:100 +2:+100'
  The whole file: ':' or '0:-0' or '0:200 +0:' and many others.
  Move the first 100 bytes to the end: '100: :100'
"""

# '-o OUT', '-fvo OUT' and '--output OUT' take the next argument,
# '-oOUT', '-fvoOUT' and '--output=OUT' carry it inline.
_OUTPUT_SEPARATE = re.compile(r'^(-[hfvpd]*o|--output)$')
_OUTPUT_INLINE = re.compile(r'^(-[hfvpd]*o.|--output=)')


def split_ranges(argv):
    """Split argv into (options, ranges): every argument past -o OUT_FILE is a range."""
    for i, arg in enumerate(argv):
        if arg == '--':
            break
        if _OUTPUT_SEPARATE.match(arg):
            return argv[:i + 2], argv[i + 2:]
        if _OUTPUT_INLINE.match(arg):
            return argv[:i + 1], argv[i + 1:]
    return argv, []


def build_parser():
    parser = argparse.ArgumentParser(
        prog='chunks',
        usage='%(prog)s [-hfvpd] IN_FILE -o OUT_FILE RANGE [RANGE ...]',
        description='Copy chunks from an input file, with flexible ranges description.\n'
                    'Example: Copy 2KiB from offset 5KiB: chunks infile -o outfile 5K:+2K (or 5K:7K)',
        epilog=RANGES_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument('in_file', metavar='IN_FILE', help='File to copy the chunks from')
    parser.add_argument('ranges', metavar='RANGE', nargs='*', default=[], help='Range to copy, see Ranges below')
    parser.add_argument('-o', '--output', metavar='OUT_FILE', help="Output file, '-' for stdout")
    parser.add_argument('-f', '--force', action='store_true', help='Force overwrite OUT_FILE if exists')
    parser.add_argument('-v', '--verbose', action='store_true', help='Be verbose (to stderr)')
    parser.add_argument('-p', '--progress', action='store_true', help='Print progress (to stderr)')
    parser.add_argument('-d', '--dummy', action='store_true',
                        help='Dummy mode: validate and resolve inputs, then exit')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def file_size(f):
    size = f.seek(0, os.SEEK_END)
    f.seek(0)
    return size


def open_output(name, force=False):
    if name == '-':
        return contextlib.nullcontext(sys.stdout.buffer)
    return open(name, 'wb' if force else 'xb')


def _discard_stdout():
    # The reader went away; stop the interpreter from flushing into the
    # closed pipe again at exit.
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, sys.stdout.fileno())
    os.close(devnull)


def main(argv=None):
    parser = build_parser()
    if argv is None:
        argv = sys.argv[1:]

    options, range_args = split_ranges(argv)
    args, extra = parser.parse_known_args(options)

    stray = args.ranges + extra
    if stray:
        parser.error(f"unexpected '{stray[0]}' (missing -o OUT_FILE before the ranges?)")
    if args.output is None:
        parser.error("missing output file name (-o OUT_FILE)")
    if not range_args:
        parser.error("no ranges defined, must have at least one range")

    def verbose(msg):
        if args.verbose:
            print(msg, file=sys.stderr)

    verbose("- Verbose mode enabled.")
    if args.force:
        verbose("- Force overwrite output file if exists.")
    if args.progress:
        verbose("- Progress display enabled.")
    if args.dummy:
        verbose("- Dummy mode enabled.")

    to_stdout = " (stdout)" if args.output == '-' else ""

    try:
        in_file = open(args.in_file, 'rb')
    except OSError as e:
        parser.error(f"input file '{args.in_file}' cannot be opened: {e.strerror}")

    with in_file:
        try:
            in_size = file_size(in_file)
        except OSError as e:
            parser.error(f"input file '{args.in_file}' cannot be opened: {e.strerror}")
        verbose(f"-   Input file: '{args.in_file}', size: {in_size}")

        try:
            ranges, expected_size = plan_ranges(in_size, range_args)
        except ChunksError as e:
            parser.error(f"invalid range '{e.descriptor}': {e}")

        for i, (descriptor, rng) in enumerate(zip(range_args, ranges), 1):
            verbose(f"-   Range #{i}: '{descriptor}' -> [{rng.start}, {rng.stop}) -> {rng.length} bytes")

        if args.dummy:
            verbose(f"- Done - dummy mode - skipped copying {expected_size} bytes "
                    f"to '{args.output}'{to_stdout}.")
            return 0

        try:
            out_file = open_output(args.output, args.force)
        except FileExistsError:
            parser.error(f"output file '{args.output}' exists, use -f to force overwrite")
        except OSError as e:
            parser.error(f"output file '{args.output}' cannot be created: {e.strerror}")

        with out_file as out:
            verbose(f"- About to copy overall {expected_size} bytes to '{args.output}'{to_stdout} ...")
            progress = ProgressPrinter() if args.progress else None
            try:
                copy_ranges(in_file, out, in_size, range_args, expected_size, progress)
                out.flush()
            except ChunksError as e:
                print(f"Error: {e}", file=sys.stderr)
                if isinstance(e.__cause__, BrokenPipeError):
                    _discard_stdout()
                return 1
            except OSError as e:
                print(f"Error: cannot write to output file: {e}", file=sys.stderr)
                if isinstance(e, BrokenPipeError):
                    _discard_stdout()
                return 1

    if progress:
        progress.finish(expected_size)
    verbose("- Done.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
