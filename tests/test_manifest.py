import json
import tempfile
import unittest
from pathlib import Path

import yaml

from promptdock.client import UnsafePathError
from promptdock.manifest import (
    all_installed,
    check_modification,
    create_empty_manifest,
    is_safe_skill_id,
    is_tool_generated,
    read_manifest,
    resolve_skill_dir,
    write_manifest,
)
from promptdock.models import Prompt, SkillManifestEntry
from promptdock.render import GENERATED_MARKER, compute_skill_hash, generate_skill_md

PROMPT = Prompt(
    id="code-review",
    title="Code Review",
    description="Review a diff carefully",
    content="Look at the change.\n",
    category="debugging",
    tags=["review", "quality"],
    version="1.2.0",
)


def _install_generated(root: Path, prompt: Prompt = PROMPT):
    content = generate_skill_md(prompt, tool_version="0.4.0")
    skill_dir = root / prompt.id
    skill_dir.mkdir(parents=True)
    (skill_dir / "SKILL.md").write_bytes(content.encode("utf-8"))
    manifest = create_empty_manifest("0.4.0").upsert_entry(
        SkillManifestEntry(
            id=prompt.id,
            kind="prompt",
            version=prompt.version,
            hash=compute_skill_hash(content),
            updated_at="2026-10-01T00:00:00.000Z",
        )
    )
    write_manifest(root, manifest)
    return manifest


class TestRender(unittest.TestCase):
    def test_front_matter_carries_marker(self) -> None:
        text = generate_skill_md(PROMPT, tool_version="0.4.0")

        self.assertTrue(text.startswith("---\n"))
        header = yaml.safe_load(text.split("---\n")[1])
        self.assertEqual(header["name"], "code-review")
        self.assertEqual(header["description"], "Review a diff carefully")
        self.assertEqual(header["tags"], ["review", "quality"])
        self.assertIs(header[GENERATED_MARKER], True)
        self.assertEqual(header["x_promptdock_version"], "0.4.0")
        self.assertIn("# Code Review\n", text)
        self.assertTrue(text.endswith("Look at the change.\n"))

    def test_generation_is_deterministic(self) -> None:
        self.assertEqual(generate_skill_md(PROMPT), generate_skill_md(PROMPT))

    def test_hash_is_sha256_hex_of_utf8(self) -> None:
        self.assertEqual(
            compute_skill_hash("abc"),
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad",
        )
        self.assertEqual(compute_skill_hash("é"), compute_skill_hash("é".encode("utf-8")))


class TestSkillIds(unittest.TestCase):
    def test_safe_ids(self) -> None:
        for skill_id in ("a", "code-review", "x1-y2"):
            self.assertTrue(is_safe_skill_id(skill_id), skill_id)
        for skill_id in ("", "-a", "a-", "A", "a_b", "../x", "a/b", ".hidden"):
            self.assertFalse(is_safe_skill_id(skill_id), skill_id)

    def test_resolve_rejects_traversal(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            self.assertEqual(resolve_skill_dir(td, "alpha"), Path(td).resolve() / "alpha")
            for skill_id in ("../../etc/passwd", "..", ".", "", "/etc"):
                with self.subTest(skill_id=skill_id):
                    with self.assertRaises(UnsafePathError):
                        resolve_skill_dir(td, skill_id)

    def test_resolve_rejects_symlink_escape(self) -> None:
        with tempfile.TemporaryDirectory() as td, tempfile.TemporaryDirectory() as outside:
            (Path(td) / "link").symlink_to(outside, target_is_directory=True)
            with self.assertRaises(UnsafePathError):
                resolve_skill_dir(td, "link")


class TestCheckModification(unittest.TestCase):
    def test_absent_skill_can_be_written(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            check = check_modification(td, "code-review", None)

        self.assertFalse(check.exists)
        self.assertFalse(check.was_modified)
        self.assertTrue(check.can_overwrite)

    def test_untouched_generated_skill(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            manifest = _install_generated(Path(td))
            check = check_modification(td, "code-review", manifest)

        self.assertTrue(check.exists)
        self.assertTrue(check.is_tool_generated)
        self.assertEqual(check.current_hash, manifest.entries[0].hash)
        self.assertFalse(check.was_modified)
        self.assertTrue(check.can_overwrite)

    def test_edited_skill_is_protected(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            manifest = _install_generated(root)
            skill_md = root / "code-review" / "SKILL.md"
            skill_md.write_text(skill_md.read_text(encoding="utf-8") + "\nmy notes\n", encoding="utf-8")

            check = check_modification(td, "code-review", manifest)

        self.assertTrue(check.was_modified)
        self.assertFalse(check.can_overwrite)

    def test_hand_authored_skill_is_protected(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            skill_dir = Path(td) / "mine"
            skill_dir.mkdir()
            (skill_dir / "SKILL.md").write_text("---\nname: mine\n---\n\nHand written.\n", encoding="utf-8")

            check = check_modification(td, "mine", None)

        self.assertTrue(check.exists)
        self.assertFalse(check.is_tool_generated)
        self.assertFalse(check.was_modified)
        self.assertFalse(check.can_overwrite)

    def test_marker_must_be_boolean_true(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            skill_md = Path(td) / "SKILL.md"
            skill_md.write_text(f"---\n{GENERATED_MARKER}: 'true'\n---\nbody\n", encoding="utf-8")
            self.assertFalse(is_tool_generated(skill_md))

            skill_md.write_text(f"---\n{GENERATED_MARKER}: true\n---\nbody\n", encoding="utf-8")
            self.assertTrue(is_tool_generated(skill_md))

            skill_md.write_text(f"no front matter\n{GENERATED_MARKER}: true\n", encoding="utf-8")
            self.assertFalse(is_tool_generated(skill_md))

    def test_traversal_id_fails_closed(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            check = check_modification(td, "../../etc/passwd", None)

        self.assertFalse(check.exists)
        self.assertFalse(check.can_overwrite)
        self.assertIsNone(check.current_hash)


class TestInstalledListing(unittest.TestCase):
    def test_roots_are_listed_separately(self) -> None:
        with tempfile.TemporaryDirectory() as personal, tempfile.TemporaryDirectory() as project:
            _install_generated(Path(personal))
            _install_generated(Path(project), PROMPT.model_copy(update={"id": "other"}))
            Path(project, "stray").mkdir()

            listed = all_installed(personal, project)

        self.assertEqual([(s.id, s.location) for s in listed], [("code-review", "personal"), ("other", "project")])

    def test_corrupt_manifest_reads_as_missing(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            Path(td, "manifest.json").write_text(json.dumps({"entries": "nope"}), encoding="utf-8")
            self.assertIsNone(read_manifest(td))
            self.assertEqual(all_installed(td, Path(td) / "missing"), [])


if __name__ == "__main__":
    unittest.main()
