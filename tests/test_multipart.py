import pytest

from reqforge.body import Body
from reqforge.errors import BuilderError
from reqforge.headers import HeaderMap
from reqforge.multipart import Form, Part, PercentEncoding, gen_boundary


def collect(body):
    return b"".join(body)


def test_form_empty():
    form = Form()
    assert collect(form.stream()) == b""


def test_stream_to_end():
    form = (
        Form("boundary")
        .part("reader1", Part.from_stream(Body.from_stream(iter(["part1"]))))
        .part("key1", Part.text("value1"))
        .part("key2", Part.text("value2").mime_str("image/bmp"))
        .part("reader2", Part.from_stream(Body.from_stream(iter(["part2"]))))
        .part("key3", Part.text("value3").file_name("filename"))
    )
    expected = (
        "--boundary\r\n"
        'Content-Disposition: form-data; name="reader1"\r\n\r\n'
        "part1\r\n"
        "--boundary\r\n"
        'Content-Disposition: form-data; name="key1"\r\n\r\n'
        "value1\r\n"
        "--boundary\r\n"
        'Content-Disposition: form-data; name="key2"\r\n'
        "Content-Type: image/bmp\r\n\r\n"
        "value2\r\n"
        "--boundary\r\n"
        'Content-Disposition: form-data; name="reader2"\r\n\r\n'
        "part2\r\n"
        "--boundary\r\n"
        'Content-Disposition: form-data; name="key3"; filename="filename"\r\n\r\n'
        "value3\r\n--boundary--\r\n"
    )
    assert collect(form.stream()).decode() == expected


def test_stream_to_end_with_header():
    part = Part.text("value2").mime_str("image/bmp")
    part = part.headers(HeaderMap([("Hdr3", "/a/b/c")]))
    form = Form("boundary").part("key2", part)
    expected = (
        "--boundary\r\n"
        'Content-Disposition: form-data; name="key2"\r\n'
        "Content-Type: image/bmp\r\n"
        "hdr3: /a/b/c\r\n"
        "\r\n"
        "value2\r\n"
        "--boundary--\r\n"
    )
    assert collect(form.stream()).decode() == expected


def test_correct_content_length():
    data = b"just some stream data"
    chunks = [data[i : i + 3] for i in range(0, len(data), 3)]
    stream_part = Part.from_stream_with_length(Body.from_stream(chunks), len(data))
    bytes_data = b"some bytes data"
    body_part = Part.from_bytes(bytes_data)
    assert stream_part.value_len() == len(data)
    assert body_part.value_len() == len(bytes_data)


def test_stream_without_length_is_unknown():
    part = Part.from_stream(Body.from_stream(["abc"]))
    assert part.value_len() is None
    assert Form().part("x", part).compute_length() is None


def test_header_percent_encoding():
    name = "start%'\"\r\nßend"
    field = Part.text("")
    assert (
        PercentEncoding.PATH_SEGMENT.encode_headers(name, field)
        == b"Content-Disposition: form-data; name*=utf-8''start%25'%22%0D%0A%C3%9Fend"
    )
    assert (
        PercentEncoding.ATTR_CHAR.encode_headers(name, field)
        == b"Content-Disposition: form-data; name*=utf-8''start%25%27%22%0D%0A%C3%9Fend"
    )


def test_noop_encoding_keeps_name():
    field = Part.text("")
    assert (
        PercentEncoding.NOOP.encode_headers("a b", field)
        == b'Content-Disposition: form-data; name="a b"'
    )


def test_filename_is_escaped():
    field = Part.text("").file_name('a"b\\c')
    assert (
        PercentEncoding.PATH_SEGMENT.encode_headers("f", field)
        == b'Content-Disposition: form-data; name="f"; filename="a\\"b\\\\c"'
    )


def test_text_part_body_and_length():
    form = Form().text("foo", "bar")
    boundary = form.boundary()
    expected = (
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="foo"\r\n\r\n'
        "bar\r\n"
        f"--{boundary}--\r\n"
    ).encode()
    assert form.compute_length() == len(expected)
    assert collect(form.stream()) == expected


def test_stream_part():
    form = (
        Form()
        .text("foo", "bar")
        .part("part_stream", Part.from_stream(Body.from_stream(["part1 part2"])))
    )
    boundary = form.boundary()
    expected = (
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="foo"\r\n'
        "\r\n"
        "bar\r\n"
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="part_stream"\r\n'
        "\r\n"
        "part1 part2\r\n"
        f"--{boundary}--\r\n"
    ).encode()
    assert collect(form.stream()) == expected


def test_empty_form_length_is_zero():
    assert Form().compute_length() == 0


def test_mime_str_rejects_garbage():
    with pytest.raises(BuilderError):
        Part.text("x").mime_str("not a mime")


def test_mime_str_with_parameter():
    part = Part.text("x").mime_str("text/plain; charset=utf-8")
    assert PercentEncoding.NOOP.encode_headers("n", part).endswith(
        b"\r\nContent-Type: text/plain; charset=utf-8"
    )


def test_gen_boundary_shape():
    boundary = gen_boundary()
    groups = boundary.split("-")
    assert [len(group) for group in groups] == [16, 16, 16, 16]
    assert set("".join(groups)) <= set("0123456789abcdef")
    assert len({gen_boundary() for _ in range(5)}) == 5


def test_form_uses_given_boundary():
    assert Form("abc").boundary() == "abc"