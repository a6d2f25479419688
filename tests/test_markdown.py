from sticky_markdown import ContentMode, content_for, escape_html, render


def test_empty_input_renders_empty():
    assert render("") == ""
    assert render(None) == ""


def test_bold():
    assert render("**hi**") == "<strong>hi</strong>"
    assert render("__hi__") == "<strong>hi</strong>"


def test_italic_and_strikethrough():
    assert render("*a* and _b_") == "<em>a</em> and <em>b</em>"
    assert render("~~gone~~") == "<del>gone</del>"


def test_header_has_no_trailing_break():
    assert render("# Title\nbody") == "<h1>Title</h1>body"
    assert render("## Sub") == "<h2>Sub</h2>"
    assert render("### Small") == "<h3>Small</h3>"


def test_list_items_wrap_in_single_list():
    assert render("- a\n- b") == "<ul><li>a</li><li>b</li></ul>"
    assert render("* a\n* b") == "<ul><li>a</li><li>b</li></ul>"


def test_numbered_items_wrap_in_ordered_list():
    assert render("1. one\n2. two") == "<ol><li>one</li><li>two</li></ol>"


def test_html_is_escaped():
    assert render("<b>") == "&lt;b&gt;"
    assert escape_html("a & b") == "a &amp; b"


def test_blockquote_after_escaping():
    assert render("> quoted") == "<blockquote>quoted</blockquote>"


def test_link_opens_in_new_context():
    html = render("[docs](https://example.com)")
    assert html == '<a href="https://example.com" target="_blank" rel="noopener">docs</a>'


def test_markup_inside_code_is_protected():
    assert render("`**x**`") == "<code>**x**</code>"
    html = render("```\n- *a*\n```")
    assert "<pre><code>" in html
    assert "<em>" not in html
    assert "<li>" not in html


def test_horizontal_rule_and_breaks():
    assert render("a\n---\nb") == "a<hr>b"
    assert render("a\nb") == "a<br>b"


def test_unbalanced_markup_does_not_raise():
    for text in ["**open", "`tick", "[label](", "~~", "```\nunterminated", "_"]:
        assert isinstance(render(text), str)


def test_content_for_switches_between_raw_and_rendered():
    assert content_for("**x**", ContentMode.EDIT) == "**x**"
    assert content_for("**x**", ContentMode.VIEW) == "<strong>x</strong>"


def test_nul_in_text_is_dropped():
    assert render("a \x000\x00 b") == "a 0 b"


def test_token_lookalike_does_not_duplicate_code_span():
    html = render("`x` \x000\x00")
    assert html.count("<code>x</code>") == 1
