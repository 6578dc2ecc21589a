"""Tests for skeleton parsing and tokens."""

import pytest

from semlog import (
    PlaceholderToken,
    TemplateParseError,
    TextToken,
    extract_placeholder_names,
    parse_template,
    reconstruct,
)


@pytest.mark.parametrize(
    'skeleton',
    [
        '',
        'no placeholders at all',
        '{0}',
        '{x}{y}{z}',
        'Hello {name}, you are {age:D3} years old',
        '{{escaped}} and {real}',
        '}}{{',
        '{@user} did {$thing}',
        'padded {n,-5} and {m,4:x}',
        '{order.Total:0.00} for {customer.Name}',
    ],
)
def test_tokens_reconstruct_skeleton(skeleton):
    """Test that joining token raw text gives back the skeleton."""
    assert reconstruct(parse_template(skeleton)) == skeleton


def test_plain_text_is_one_token():
    """Test a skeleton without placeholders."""
    assert parse_template('just text') == [TextToken('just text')]


def test_empty_skeleton_has_no_tokens():
    """Test that an empty skeleton parses to nothing."""
    assert parse_template('') == []


def test_adjacent_placeholders():
    """Test placeholders with no text between them."""
    tokens = parse_template('{x}{y}')
    assert [t.name for t in tokens] == ['x', 'y']
    assert all(isinstance(t, PlaceholderToken) for t in tokens)


def test_placeholder_attributes():
    """Test format, alignment and markers on parsed placeholders."""
    fmt, aligned, destructured, stringified = [
        t for t in parse_template('{a:0.00} {b,-4} {@c} {$d}')
        if isinstance(t, PlaceholderToken)
    ]
    assert fmt.format == '0.00'
    assert aligned.alignment == '-4'
    assert destructured.destructure and not destructured.stringify
    assert stringified.stringify and not stringified.destructure
    assert destructured.name == 'c'
    assert destructured.raw_text == '{@c}'


def test_positional_detection():
    """Test that only all-digit names are positional."""
    zero, named, big = [
        t for t in parse_template('{0} {zero} {12}')
        if isinstance(t, PlaceholderToken)
    ]
    assert zero.is_positional and zero.index == 0
    assert not named.is_positional and named.index is None
    assert big.index == 12


def test_escapes_are_text():
    """Test that doubled braces never produce placeholders."""
    tokens = parse_template('{{0}} and {{name}}')
    assert tokens == [TextToken('{{0}} and {{name}}')]
    assert tokens[0].value == '{0} and {name}'


def test_extract_placeholder_names():
    """Test listing placeholder names."""
    assert extract_placeholder_names('{1} and {0} by {who}') == ['1', '0', 'who']


@pytest.mark.parametrize(
    'skeleton, position',
    [
        ('unclosed {name', 9),
        ('stray } brace', 6),
        ('nested {a{b}}', 9),
        ('empty {} placeholder', 6),
        ('bad {na me}', 4),
    ],
)
def test_malformed_skeletons_raise(skeleton, position):
    """Test that unbalanced braces and invalid placeholders are rejected."""
    with pytest.raises(TemplateParseError) as excinfo:
        parse_template(skeleton)
    assert excinfo.value.position == position
    assert excinfo.value.skeleton == skeleton


def test_parse_error_is_value_error():
    """Test that parse errors can be caught as ValueError."""
    with pytest.raises(ValueError):
        parse_template('{')


def test_with_name_keeps_key():
    """Test that renaming a placeholder keeps its index and text."""
    token = parse_template('{0:x}')[0]
    renamed = token.with_name('x.Y')
    assert renamed.name == 'x.Y'
    assert renamed.key == '0'
    assert renamed.index == 0
    assert renamed.format == 'x'
    assert renamed.raw_text == '{0:x}'
    assert renamed != token
