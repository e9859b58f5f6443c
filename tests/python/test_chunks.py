# test_chunks.py - Python CLI tests for the chunks tool
import subprocess
import os
import sys

HERE = os.path.dirname(os.path.abspath(__file__))
CHUNKS_CMD = [sys.executable, os.path.join(HERE, "..", "..", "chunks.py")]
TEST_FILE = os.path.join(HERE, "test.bin")
OUT_FILE = os.path.join(HERE, "out.bin")

def run_chunks(*args):
    return subprocess.run(
        CHUNKS_CMD + list(args),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE
    )

def write_file(content, path=TEST_FILE):
    with open(path, "wb") as f:
        f.write(content)

def read_file(path=OUT_FILE):
    with open(path, "rb") as f:
        return f.read()

def cleanup():
    for path in (TEST_FILE, OUT_FILE):
        if os.path.exists(path):
            os.remove(path)

def teardown_function(function):
    cleanup()

def run_test(name, func):
    print(f"=== RUN   {name}")
    try:
        func()
        print(f"--- PASS: {name}")
    except AssertionError as e:
        print(f"--- FAIL: {name}")
        print(f"    {e}")
        return False
    except Exception as e:
        print(f"--- FAIL: {name}")
        print(f"    Unexpected error: {e}")
        return False
    return True

def test_chained_ranges():
    write_file(b"0123456789")
    result = run_chunks(TEST_FILE, "-o", "-", "2:5", "+0:+2")
    assert result.returncode == 0, f"Expected exit code 0, got {result.returncode}: {result.stderr.decode()}"
    assert result.stdout == b"23456", f"Expected '23456', got: {result.stdout}"

def test_skip_between_ranges():
    data = bytes(range(256)) + bytes(range(44))
    write_file(data)
    result = run_chunks(TEST_FILE, "-o", "-", "0:100", "+2:+100")
    assert result.stdout == data[0:100] + data[102:202], f"Unexpected output of {len(result.stdout)} bytes"

def test_back_relative_range_is_not_an_option():
    write_file(b"0123456789")
    result = run_chunks(TEST_FILE, "-o", "-", "-3:")
    assert result.returncode == 0, f"Expected exit code 0, got {result.returncode}: {result.stderr.decode()}"
    assert result.stdout == b"789", f"Expected '789', got: {result.stdout}"

def test_whole_file():
    write_file(b"abcdefghij")
    result = run_chunks(TEST_FILE, "-o", "-", ":")
    assert result.stdout == b"abcdefghij", f"Expected full file content, got: {result.stdout}"

def test_all_but_last_bytes():
    write_file(b"abcdefghij")
    result = run_chunks(TEST_FILE, "-o", "-", ":-4")
    assert result.stdout == b"abcdef", f"Expected 'abcdef', got: {result.stdout}"

def test_move_head_to_end():
    write_file(b"0123456789")
    result = run_chunks(TEST_FILE, "-o", "-", "3:", ":3")
    assert result.stdout == b"3456789012", f"Expected '3456789012', got: {result.stdout}"

def test_overlapping_ranges_are_copied_independently():
    write_file(b"0123456789")
    result = run_chunks(TEST_FILE, "-o", "-", "0:3", "1:4", "0:3")
    assert result.stdout == b"012123012", f"Expected '012123012', got: {result.stdout}"

def test_reversed_range_is_empty():
    write_file(b"0123456789")
    result = run_chunks(TEST_FILE, "-o", "-", "8:2", "0:1")
    assert result.returncode == 0, f"Expected exit code 0, got {result.returncode}"
    assert result.stdout == b"0", f"Expected '0', got: {result.stdout}"

def test_oversized_range_is_cropped():
    write_file(b"abcdefghij")
    result = run_chunks(TEST_FILE, "-o", "-", "5:+1M")
    assert result.stdout == b"fghij", f"Expected 'fghij', got: {result.stdout}"

def test_output_file():
    write_file(b"0123456789")
    result = run_chunks(TEST_FILE, "-o", OUT_FILE, "2:5", "+0:+2")
    assert result.returncode == 0, f"Expected exit code 0, got {result.returncode}: {result.stderr.decode()}"
    assert result.stdout == b"", f"Expected nothing on stdout, got: {result.stdout}"
    assert read_file() == b"23456", f"Expected '23456', got: {read_file()}"

def test_inline_output_forms():
    write_file(b"0123456789")
    for output_args in (["-o" + OUT_FILE], ["--output=" + OUT_FILE], ["--output", OUT_FILE], ["-fo", OUT_FILE]):
        result = run_chunks(TEST_FILE, *output_args, "-2:", "0:1")
        assert result.returncode == 0, f"{output_args}: exit code {result.returncode}: {result.stderr.decode()}"
        assert read_file() == b"890", f"{output_args}: expected '890', got: {read_file()}"
        os.remove(OUT_FILE)

def test_existing_output_needs_force():
    write_file(b"0123456789")
    write_file(b"keep", OUT_FILE)
    result = run_chunks(TEST_FILE, "-o", OUT_FILE, "0:2")
    assert result.returncode != 0, f"Expected non-zero exit code, got {result.returncode}"
    assert b"-f" in result.stderr, f"Expected a hint about -f, got: {result.stderr.decode()}"
    assert read_file() == b"keep", f"Output file was modified: {read_file()}"

    result = run_chunks("-f", TEST_FILE, "-o", OUT_FILE, "0:2")
    assert result.returncode == 0, f"Expected exit code 0, got {result.returncode}: {result.stderr.decode()}"
    assert read_file() == b"01", f"Expected '01', got: {read_file()}"

def test_invalid_range_creates_no_output():
    write_file(b"0123456789")
    result = run_chunks(TEST_FILE, "-o", OUT_FILE, "0:2", "5x:")
    assert result.returncode != 0, f"Expected non-zero exit code, got {result.returncode}"
    assert b"error" in result.stderr.lower(), f"Expected 'error' in stderr, got: {result.stderr.decode()}"
    assert b"5x:" in result.stderr, f"Expected the bad range in stderr, got: {result.stderr.decode()}"
    assert not os.path.exists(OUT_FILE), "Output file should not be created"

def test_range_without_separator():
    write_file(b"0123456789")
    result = run_chunks(TEST_FILE, "-o", "-", "5")
    assert result.returncode != 0, f"Expected non-zero exit code, got {result.returncode}"
    assert result.stdout == b"", f"Expected no output, got: {result.stdout}"

def test_overflowing_range():
    write_file(b"0123456789")
    result = run_chunks(TEST_FILE, "-o", "-", "0:99999999999999999999")
    assert result.returncode != 0, f"Expected non-zero exit code, got {result.returncode}"
    assert b"out of range" in result.stderr, f"Expected 'out of range' in stderr, got: {result.stderr.decode()}"

def test_dummy_mode():
    write_file(b"0123456789")
    result = run_chunks("-dv", TEST_FILE, "-o", OUT_FILE, "2:5", "+0:+2")
    assert result.returncode == 0, f"Expected exit code 0, got {result.returncode}: {result.stderr.decode()}"
    assert not os.path.exists(OUT_FILE), "Dummy mode should not create the output file"
    assert b"Range #2: '+0:+2' -> [5, 7) -> 2 bytes" in result.stderr, f"Got: {result.stderr.decode()}"
    assert b"skipped copying 5 bytes" in result.stderr, f"Got: {result.stderr.decode()}"

def test_progress():
    write_file(b"0123456789")
    result = run_chunks("-p", TEST_FILE, "-o", "-", "0:4")
    assert result.stdout == b"0123", f"Expected '0123', got: {result.stdout}"
    assert b"100%" in result.stderr, f"Expected '100%' in stderr, got: {result.stderr.decode()}"

def test_progress_nothing_to_copy():
    write_file(b"0123456789")
    result = run_chunks("-p", TEST_FILE, "-o", "-", "4:4")
    assert result.stdout == b"", f"Expected no output, got: {result.stdout}"
    assert result.stderr == b" 100% \n", f"Expected ' 100% ', got: {result.stderr}"

def test_missing_file():
    result = run_chunks("nonexistent.bin", "-o", "-", "0:10")
    assert result.returncode != 0, f"Expected non-zero exit code, got {result.returncode}"
    assert b"error" in result.stderr.lower(), f"Expected 'error' in stderr, got: {result.stderr.decode()}"

def test_missing_output():
    write_file(b"0123456789")
    result = run_chunks(TEST_FILE, "0:10")
    assert result.returncode != 0, f"Expected non-zero exit code, got {result.returncode}"
    assert b"missing -o OUT_FILE" in result.stderr, f"Expected a hint about -o, got: {result.stderr.decode()}"

def test_missing_ranges():
    write_file(b"0123456789")
    result = run_chunks(TEST_FILE, "-o", "-")
    assert result.returncode != 0, f"Expected non-zero exit code, got {result.returncode}"
    assert b"no ranges" in result.stderr, f"Expected 'no ranges' in stderr, got: {result.stderr.decode()}"

def test_help():
    result = run_chunks("-h")
    assert result.returncode == 0, f"Expected exit code 0, got {result.returncode}"
    assert b"Values supported: 64 bit" in result.stdout, f"Expected value bounds in help, got: {result.stdout.decode()}"
    assert b"Sample ranges:" in result.stdout, f"Expected the ranges reference in help, got: {result.stdout.decode()}"

def test_version():
    result = run_chunks("--version")
    assert result.returncode == 0, f"Expected exit code 0, got {result.returncode}"
    assert result.stdout.startswith(b"chunks "), f"Expected the version, got: {result.stdout}"

def test_reader_closes_stdout_early():
    write_file(b"x" * (2 * 1024 * 1024))
    proc = subprocess.Popen(CHUNKS_CMD + [TEST_FILE, "-o", "-", ":"], stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    proc.stdout.close()
    stderr = proc.stderr.read()
    proc.stderr.close()
    returncode = proc.wait()
    assert returncode == 1, f"Expected exit code 1, got {returncode}"
    assert b"Error" in stderr, f"Expected an error in stderr, got: {stderr.decode()}"
    assert b"Exception ignored" not in stderr, f"Unexpected shutdown traceback: {stderr.decode()}"

if __name__ == "__main__":
    tests = [
        ("TestChainedRanges", test_chained_ranges),
        ("TestSkipBetweenRanges", test_skip_between_ranges),
        ("TestBackRelativeRange", test_back_relative_range_is_not_an_option),
        ("TestWholeFile", test_whole_file),
        ("TestAllButLastBytes", test_all_but_last_bytes),
        ("TestMoveHeadToEnd", test_move_head_to_end),
        ("TestOverlappingRanges", test_overlapping_ranges_are_copied_independently),
        ("TestReversedRange", test_reversed_range_is_empty),
        ("TestOversizedRange", test_oversized_range_is_cropped),
        ("TestOutputFile", test_output_file),
        ("TestInlineOutputForms", test_inline_output_forms),
        ("TestExistingOutput", test_existing_output_needs_force),
        ("TestInvalidRange", test_invalid_range_creates_no_output),
        ("TestRangeWithoutSeparator", test_range_without_separator),
        ("TestOverflowingRange", test_overflowing_range),
        ("TestDummyMode", test_dummy_mode),
        ("TestProgress", test_progress),
        ("TestProgressNothingToCopy", test_progress_nothing_to_copy),
        ("TestMissingFile", test_missing_file),
        ("TestMissingOutput", test_missing_output),
        ("TestMissingRanges", test_missing_ranges),
        ("TestHelp", test_help),
        ("TestVersion", test_version),
        ("TestReaderClosesStdoutEarly", test_reader_closes_stdout_early),
    ]

    all_passed = True
    for name, func in tests:
        cleanup()
        if not run_test(name, func):
            all_passed = False

    cleanup()

    if not all_passed:
        print("FAIL")
        sys.exit(1)

    print("PASS")
