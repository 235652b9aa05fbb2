import pytest

from dir2prompt import create_combined_prompt, is_likely_text_file, scan_directory
from errors import PathError
from scanner import find_gguf_models, find_prompt_files


class TestFindModels:
    def test_recursive_and_sorted_by_name(self, tmp_path):
        models = tmp_path / "models"
        (models / "llama").mkdir(parents=True)
        (models / "zeta.gguf").write_bytes(b"")
        (models / "llama" / "alpha.gguf").write_bytes(b"")
        (models / "notes.txt").write_text("x")

        found = find_gguf_models([str(models)], tmp_path)
        assert [m.display_name for m in found] == ["alpha.gguf", "zeta.gguf"]
        assert found[0].full_path == str(models / "llama" / "alpha.gguf")

    def test_relative_directory_is_under_home(self, tmp_path):
        (tmp_path / "models").mkdir()
        (tmp_path / "models" / "a.gguf").write_bytes(b"")
        assert [m.display_name for m in find_gguf_models(["models"], tmp_path)] == [
            "a.gguf"
        ]

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(PathError, match="does not exist"):
            find_gguf_models([str(tmp_path / "missing")], tmp_path)


class TestFindPrompts:
    def test_missing_directory_is_created(self, tmp_path):
        prompts = tmp_path / "prompts"
        assert find_prompt_files(prompts) == []
        assert prompts.is_dir()

    def test_sorted_absolute_paths(self, tmp_path):
        prompts = tmp_path / "prompts"
        (prompts / "sub").mkdir(parents=True)
        (prompts / "b.txt").write_text("b")
        (prompts / "sub" / "a.txt").write_text("a")
        found = find_prompt_files(prompts)
        assert found == sorted(
            [str((prompts / "b.txt").resolve()), str((prompts / "sub" / "a.txt").resolve())]
        )


class TestDirectoryScan:
    @pytest.fixture
    def project(self, tmp_path):
        root = tmp_path / "project"
        (root / "src").mkdir(parents=True)
        (root / "README.md").write_text("hello\n")
        (root / "src" / "main.py").write_text("print('hi')\n")
        (root / "logo.png").write_bytes(b"\x89PNG")
        return root

    def test_tree_and_contents(self, project):
        scan = scan_directory(project)
        assert scan.tree_structure == (
            "├── README.md\n"
            "├── logo.png\n"
            "└── src\n"
            "    └── main.py\n"
        )
        assert "\n=== README.md ===\nhello\n" in scan.file_contents
        assert "=== main.py ===" in scan.file_contents
        assert "logo.png" not in scan.file_contents

    def test_missing_directory(self, tmp_path):
        with pytest.raises(PathError, match="Directory not found"):
            scan_directory(tmp_path / "missing")

    def test_text_file_detection(self):
        assert is_likely_text_file("a/b.PY")
        assert not is_likely_text_file("a/b.gguf")
        assert not is_likely_text_file("Makefile")

    def test_combined_prompt(self, project, tmp_path):
        prompt = tmp_path / "review.txt"
        prompt.write_text("Review this code.")
        prompts_dir = tmp_path / "prompts"

        combined = create_combined_prompt(prompt, project, prompts_dir)

        text = (prompts_dir / combined.split("/")[-1]).read_text()
        assert combined.startswith(str(prompts_dir / "combined_prompt_"))
        assert text.startswith("Review this code.\n\nDirectory Structure:\n├── README.md")
        assert "File Contents:\n=== README.md ===" in text

    def test_combined_prompt_missing_original(self, project, tmp_path):
        with pytest.raises(PathError, match="original prompt"):
            create_combined_prompt(tmp_path / "nope.txt", project, tmp_path)
