import pytest

from config import (
    load_config,
    parse_line,
    read_basename_fields,
    read_document,
    read_field,
    read_indexed_fields,
    write_document,
)
from errors import ConfigError


class TestParseLine:
    def test_blank_and_comment_lines_are_skipped(self):
        assert parse_line("") is None
        assert parse_line("   ") is None
        assert parse_line("# mode_1 = x") is None
        assert parse_line("   # indented comment") is None

    def test_line_without_equals_is_skipped(self):
        assert parse_line("just some words") is None

    def test_splits_at_first_equals(self):
        assert parse_line('mode_1 = "a|temp=0.8"') == ("mode_1", "a|temp=0.8")

    def test_strips_one_layer_of_quotes(self):
        assert parse_line('key = ""quoted""') == ("key", '"quoted"')
        assert parse_line('key = "  padded  "') == ("key", "padded")

    def test_unquoted_value(self):
        assert parse_line("default_mode = 2") == ("default_mode", "2")


class TestReadField:
    def test_exact_match_only(self, write_config):
        config_file = write_config(
            "mode_10 = ten\n"
            "default_mode_extra = 5\n"
            "mode = plain\n"
        )
        assert read_field(config_file, "mode") == "plain"
        assert read_field(config_file, "default_mode") == ""

    def test_first_match_wins(self, write_config):
        config_file = write_config('llama_cli_path = "/a"\nllama_cli_path = "/b"\n')
        assert read_field(config_file, "llama_cli_path") == "/a"

    def test_empty_value_is_not_found(self, write_config):
        config_file = write_config('prompt_directory = ""\n')
        assert read_field(config_file, "prompt_directory") == ""

    def test_empty_field_name(self, write_config):
        config_file = write_config("x = 1\n")
        assert read_field(config_file, "") == ""

    def test_missing_file(self, tmp_path):
        assert read_field(tmp_path / "nope.toml", "x") == ""

    def test_commented_out_field_is_ignored(self, write_config):
        config_file = write_config("# default_mode = 3\n")
        assert read_field(config_file, "default_mode") == ""


class TestReadBasenameFields:
    def test_ordered_by_numeric_suffix_not_line_order(self, write_config):
        config_file = write_config(
            'mode_3 = "three"\n'
            'mode_10 = "ten"\n'
            'mode_1 = "one"\n'
            'mode_2 = "two"\n'
        )
        assert read_basename_fields(config_file, "mode") == [
            "one",
            "two",
            "three",
            "ten",
        ]

    def test_skips_non_numeric_suffixes_comments_and_empty_values(self, write_config):
        config_file = write_config(
            'mode_x = "bad"\n'
            'mode_1a = "bad"\n'
            'mode_-1 = "bad"\n'
            '# mode_4 = "commented"\n'
            'mode_5 = ""\n'
            'mode_2 = "good"\n'
            'modes_1 = "other prefix"\n'
        )
        assert read_basename_fields(config_file, "mode") == ["good"]

    def test_pairs_keep_numbers(self, write_config):
        config_file = write_config(
            'gguf_model_directory_2 = "/b"\ngguf_model_directory_1 = "/a"\n'
        )
        assert read_indexed_fields(config_file, "gguf_model_directory") == [
            (1, "/a"),
            (2, "/b"),
        ]

    def test_missing_file_and_empty_prefix(self, tmp_path, write_config):
        assert read_basename_fields(tmp_path / "nope.toml", "mode") == []
        config_file = write_config('mode_1 = "x"\n')
        assert read_basename_fields(config_file, "") == []


class TestLoadConfig:
    def test_defaults_when_missing(self, paths):
        config = load_config(paths)
        assert config["llama_cli_path"] == ""
        assert config["logging_enabled"] is False
        assert config["gguf_model_directories"] == []
        assert config["default_mode"] is None

    def test_reads_values(self, paths, write_config):
        write_config(
            "# QueryGGUF Configuration File\n"
            'llama_cli_path = "/opt/llama-cli"\n'
            "logging_enabled = true\n"
            'log_directory_path = "/tmp/logs"\n'
            'gguf_model_directory_2 = "/models/b"\n'
            'gguf_model_directory_1 = "/models/a"\n'
            "default_mode = 2\n"
        )
        config = load_config(paths)
        assert config["llama_cli_path"] == "/opt/llama-cli"
        assert config["logging_enabled"] is True
        assert config["log_directory_path"] == "/tmp/logs"
        assert config["gguf_model_directories"] == ["/models/a", "/models/b"]
        assert config["prompt_directory"] == "prompts"
        assert config["default_mode"] == 2

    def test_non_numeric_default_mode(self, paths, write_config):
        write_config("default_mode = first\n")
        assert load_config(paths)["default_mode"] is None


class TestDocumentIO:
    def test_read_missing_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="Failed to read config"):
            read_document(tmp_path / "nope.toml")

    def test_write_then_read(self, tmp_path):
        target = tmp_path / "c.toml"
        write_document(target, "a = 1\n")
        assert read_document(target) == "a = 1\n"

    def test_write_to_directory_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="Failed to write config"):
            write_document(tmp_path, "a = 1\n")
