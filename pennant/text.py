from itertools import zip_longest
import operator

# please leave this copyright notice in binary distributions.
license = """
pennant/text.py
part of the Pennant software package
Copyright 2023 by Larry Hastings
All rights reserved.

Permission is hereby granted, free of charge, to any person obtaining a
copy of this software and associated documentation files (the "Software"),
to deal in the Software without restriction, including without limitation
the rights to use, copy, modify, merge, publish, distribute, sublicense,
and/or sell copies of the Software, and to permit persons to whom the
Software is furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included
in all copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT.
IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM,
DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION OF CONTRACT,
TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN CONNECTION WITH THE SOFTWARE
OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.
"""


def split_help(s, *, code_indent=4):
    """
    Splits help text into words, suitable for feeding
    into wrap_words().

    Lines indented by code_indent spaces or more are
    examples; they're kept whole, with their indent,
    and surrounded by '' entries so they start and end
    their own line.

    A blank line becomes two '' entries (a line break
    and an empty line), so paragraphs stay apart.
    """
    words = []
    for line in s.expandtabs(8).split('\n'):
        stripped = line.lstrip()
        if not stripped:
            words.extend(('', ''))
            continue
        indent = len(line) - len(stripped)
        if indent >= code_indent:
            if words and words[-1]:
                words.append('')
            words.append(line.rstrip())
            words.append('')
            continue
        words.extend(stripped.split())

    # trailing blank lines are noise
    while words and not words[-1]:
        words.pop()
    return words


test_number = 0
verbose = False

def _test_split_help(input, expected):
    global test_number
    test_number += 1
    got = split_help(input)
    if verbose:
        print()
        print(f"test_split_help test #{test_number}:")
        print("[input]")
        print(input)
        print("[expected]")
        print(expected)
        print("[got]")
        print(got)
        print()
    assert got == expected, f"split_help test #{test_number} failed!\n{   input=}\n{expected=}\n{     got=}"

def test_split_help():
    global test_number
    test_number = 0
    _test_split_help(
        "Print verbose output.",
        ['Print', 'verbose', 'output.'],
        )
    _test_split_help(
        "Lines of context.\n\nFor example:\n    --lines=5 file.txt\nshows five.",
        ['Lines', 'of', 'context.', '', '', 'For', 'example:', '', '    --lines=5 file.txt', '', 'shows', 'five.'],
        )
    _test_split_help(
        "trailing blank lines are dropped\n\n\n",
        ['trailing', 'blank', 'lines', 'are', 'dropped'],
        )


def wrap_words(words, margin=79, *, two_spaces=True):
    """
    Joins "words" into lines no longer than "margin"
    and returns the result as a string.

    An empty word forces a line break.  Words are
    never broken, so a single word longer than the
    margin gets a line to itself.

    If "two_spaces" is true, a word ending a sentence
    ('.', '?', or '!') is followed by two spaces.
    """
    lines = []
    line = []
    col = 0
    lastword = ''

    for word in words:
        if not word:
            lines.append("".join(line))
            line.clear()
            col = 0
            lastword = word
            continue

        space = "  " if (two_spaces and lastword.endswith(('.', '?', '!'))) else " "

        if col and ((col + len(space) + len(word)) > margin):
            lines.append("".join(line))
            line.clear()
            col = 0

        if col:
            line.append(space)
            col += len(space)
        line.append(word)
        col += len(word)
        lastword = word

    if line:
        lines.append("".join(line))
    return "\n".join(lines)


def _test_wrap_words(input, expected, margin=79):
    global test_number
    test_number += 1
    got = wrap_words(input, margin)
    if verbose:
        print()
        print(f"test_wrap_words test #{test_number}:")
        print("[input]")
        print(input)
        print("[expected]")
        print(expected)
        print("[got]")
        print(got)
        print("[repr(got)]")
        print(repr(got))
        print()
    assert got == expected, f"wrap_words test #{test_number} failed!\n{   input=}\n{expected=}\n{     got=}"

def test_wrap_words():
    global test_number
    test_number = 0
    _test_wrap_words(
        "Print verbose output. Repeat for more.".split(),
        "Print verbose output.  Repeat for more.")
    _test_wrap_words(
        "Print verbose output. Repeat for more.".split(),
        "Print verbose\noutput.  Repeat\nfor more.",
        16)
    _test_wrap_words(
        ['Example:', '', '    -v -v -v', '', 'is', 'loud.'],
        "Example:\n    -v -v -v\nis loud.",
        20)


def _max_line_length(lines):
    return max([len(line) for line in lines])


def merge_columns(*blobs, column_spacing=1):
    """
    Merge n blobs containing text together, each blob getting
    its own column.

    Each "blob" is a tuple of three items:
        (text, min_width, max_width)
    Text should be a single text string, with newline
    characters separating lines.

    A column is as wide as its longest line plus column_spacing,
    clamped to min_width and max_width.  A column whose lines
    run past max_width pushes every later column down, so the
    later columns start on the line after its last too-wide line.
    That's how a long flag gets its help text on the next line:

        --a-really-very-long-option <string>
                             Help for the long option.

    Lines are .rstrip()ped.  This function does not text-wrap.
    """
    columns = []
    widths = []
    first_lines = []
    max_lines = 0

    for blob in blobs:
        s, min_width, max_width = blob

        # check types, let them raise exceptions as needed
        assert isinstance(s, str)
        operator.index(min_width)
        operator.index(max_width)

        lines = s.rstrip().split('\n')
        measured_width = _max_line_length(lines) + column_spacing
        widths.append(min(max_width, max(min_width, measured_width)))

        # previous too-wide columns delay this one
        delay = max(first_lines, default=0)
        columns.append(([''] * delay) + lines)
        max_lines = max(max_lines, delay + len(lines))

        too_wide = [i for i, line in enumerate(lines) if len(line) >= max_width]
        first_lines.append(delay + (too_wide[-1] + 1 if too_wide else 0))

    output = []
    for i in range(max_lines):
        line = []
        for column, width in zip_longest(columns, widths):
            column = column[i] if i < len(column) else ''
            line.append(column.ljust(width))
        output.append("".join(line).rstrip())

    return "\n".join(output).rstrip()


def _test_merge_columns(input, expected, **kwargs):
    global test_number
    test_number += 1
    got = merge_columns(*input, **kwargs)
    if verbose:
        print()
        print("_" * 79)
        print(f"test_merge_columns test #{test_number}:")
        print("[input]")
        print(input)
        print("[expected]")
        print(expected)
        print("[got]")
        print(got)
        print("[repr(got)]")
        print(repr(got))
        print()
    assert got == expected, f"merge_columns test #{test_number} failed!\n{     input=}\n{expected=}\n{     got=}"

def test_merge_columns():
    global test_number
    test_number = 0
    _test_merge_columns([("-a", 6, 6), ("apple", 0, 40)],
        "-a    apple")
    _test_merge_columns([("-p <string>", 6, 6), ("pear", 0, 40)],
        "-p <string>\n      pear")
    _test_merge_columns([("-v", 4, 4), ("loud\nlouder", 0, 40)],
        "-v  loud\n    louder")
    _test_merge_columns([("-x", 4, 4), ("", 0, 40)],
        "-x")


def _test_pipeline(columns, expected):
    global test_number
    test_number += 1
    wrapped = [(wrap_words(split_help(column), margin=max), min, max) for column, min, max in columns]
    got = merge_columns(*wrapped)
    if verbose:
        print()
        print("_" * 79)
        print(f"test_pipeline test #{test_number}:")
        print("[wrapped]")
        print(wrapped)
        print("[expected]")
        print(expected)
        print("[got]")
        print(got)
        print()
    assert got == expected, f"pipeline test #{test_number} failed!\n{   columns=}\n{expected=}\n{     got=}"

def test_pipeline():
    global test_number
    test_number = 0
    _test_pipeline(
        (
            ("-v|--verbose", 20, 20),
            ("Causes the program to produce more output. Specifying it multiple times raises the volume of output.", 0, 60),
        ),
        '-v|--verbose        Causes the program to produce more output.  Specifying it\n                    multiple times raises the volume of output.'
    )


if __name__ == "__main__":
    import sys
    verbose = ("-v" in sys.argv) or ("--verbose" in sys.argv)
    test_split_help()
    test_wrap_words()
    test_merge_columns()
    test_pipeline()
