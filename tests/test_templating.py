"""Tests for command templating.

Covers:
- extract_host() on the locations of an announcement
- split_command() shell-style tokenization
- render_arguments() first-occurrence substitution
"""

import shlex

import pytest

from canon_ssdp.dispatch import extract_host, render_arguments, replace_first, split_command


# ---------------------------------------------------------------------------
# TestExtractHost
# ---------------------------------------------------------------------------


class TestExtractHost:
    """Host part of the first location."""

    def test_ipv4_with_port(self):
        assert extract_host(["http://10.0.0.5:80/desc.xml"]) == "10.0.0.5"

    def test_only_first_location_counts(self):
        assert extract_host(["http://10.0.0.5/a.xml", "http://10.0.0.6/b.xml"]) == "10.0.0.5"

    def test_hostname(self):
        assert extract_host(["http://camera.local:49152/upnp.xml"]) == "camera.local"

    def test_ipv6_literal_loses_brackets(self):
        assert extract_host(["http://[fe80::1]:8080/desc.xml"]) == "fe80::1"

    def test_userinfo_is_dropped(self):
        assert extract_host(["http://user:pw@192.168.1.5/desc.xml"]) == "192.168.1.5"

    def test_hostname_case_is_preserved(self):
        assert extract_host(["http://Camera-EOS.Local:80/d.xml"]) == "Camera-EOS.Local"

    def test_ipv6_literal_case_is_preserved(self):
        assert extract_host(["http://user@[FE80::1]:8080/d.xml"]) == "FE80::1"

    @pytest.mark.parametrize(
        "locations",
        [
            [],
            None,
            [""],
            ["not a uri"],
            ["/relative/desc.xml"],
            ["http:///desc.xml"],
            ["http://10.0.0.5:notaport/desc.xml"],
            ["http://[fe80::1/desc.xml"],
        ],
    )
    def test_failures_return_none(self, locations):
        assert extract_host(locations) is None


# ---------------------------------------------------------------------------
# TestSplitCommand
# ---------------------------------------------------------------------------


class TestSplitCommand:
    """Shell-style tokenization."""

    def test_quoted_argument_stays_whole(self):
        assert split_command('capture --title "two words" x') == ["capture", "--title", "two words", "x"]

    def test_single_quotes_and_escapes(self):
        assert split_command(r"a 'b c' d\ e") == ["a", "b c", "d e"]

    def test_placeholder_not_expanded(self):
        assert split_command('echo "$HOSTNAME"') == ["echo", "$HOSTNAME"]

    def test_unbalanced_quote_raises(self):
        with pytest.raises(ValueError):
            split_command('echo "unterminated')

    def test_empty_command_raises(self):
        with pytest.raises(ValueError):
            split_command("   ")


# ---------------------------------------------------------------------------
# TestRenderArguments
# ---------------------------------------------------------------------------


class TestRenderArguments:
    """Only the first placeholder is substituted."""

    def test_substitution_matches_tokenizing_the_substituted_line(self):
        argv = render_arguments("capture --host=$HOSTNAME", "192.168.1.5")
        assert argv == shlex.split("capture --host=192.168.1.5")

    def test_second_token_left_unchanged(self):
        assert render_arguments("$HOSTNAME $HOSTNAME", "H") == ["H", "$HOSTNAME"]

    def test_second_occurrence_in_same_token_left_unchanged(self):
        assert render_arguments("echo $HOSTNAME$HOSTNAME", "H") == ["echo", "H$HOSTNAME"]

    def test_no_placeholder(self):
        assert render_arguments("ls -l", "10.0.0.5") == ["ls", "-l"]

    def test_placeholder_inside_quotes(self):
        argv = render_arguments("gphoto2 --port 'ptpip:$HOSTNAME' --get-all-files", "10.0.0.5")
        assert argv == ["gphoto2", "--port", "ptpip:10.0.0.5", "--get-all-files"]

    def test_host_with_spaces_stays_one_token(self):
        assert render_arguments("echo $HOSTNAME", "a b") == ["echo", "a b"]

    def test_custom_placeholder(self):
        assert render_arguments("ping {host}", "10.0.0.1", placeholder="{host}") == ["ping", "10.0.0.1"]

    def test_tokenize_failure_raises(self):
        with pytest.raises(ValueError):
            render_arguments("echo 'oops", "H")

    def test_replace_first(self):
        assert replace_first("a$Xb$X", "$X", "-") == ("a-b$X", True)
        assert replace_first("abc", "$X", "-") == ("abc", False)
