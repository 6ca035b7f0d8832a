import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from promptdock.client import ConfirmationRequiredError
from promptdock.manifest import read_manifest
from promptdock.models import Prompt
from promptdock.render import compute_skill_hash
from promptdock.skills import SkillInstaller

PROMPTS = [
    Prompt(id="alpha", title="Alpha", description="First", content="Do alpha.", version="1.0.0"),
    Prompt(id="beta", title="Beta", content="Do beta.", version="2.1.0"),
]


class TestInstall(unittest.TestCase):
    def test_install_writes_skill_and_manifest(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            result = SkillInstaller(td, tool_version="0.4.0").install(PROMPTS, ["alpha", "beta"])

            root = Path(td).resolve()
            self.assertEqual(result.succeeded, ("alpha", "beta"))
            self.assertEqual(result.skipped, ())
            self.assertTrue(result.ok)
            self.assertEqual(result.target_dir, root)

            manifest = read_manifest(td)
            self.assertEqual([e.id for e in manifest.entries], ["alpha", "beta"])
            self.assertEqual(manifest.tool_version, "0.4.0")
            beta = manifest.find_entry("beta")
            self.assertEqual(beta.kind, "prompt")
            self.assertEqual(beta.version, "2.1.0")
            self.assertEqual(beta.hash, compute_skill_hash((root / "beta" / "SKILL.md").read_bytes()))

    def test_reinstall_of_untouched_skill_rewrites_it(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            installer = SkillInstaller(td, tool_version="0.4.0")
            installer.install(PROMPTS, ["alpha"])
            old_hash = read_manifest(td).find_entry("alpha").hash

            updated = [PROMPTS[0].model_copy(update={"content": "Do alpha, better.", "version": "1.1.0"})]
            result = installer.install(updated, ["alpha"])

            skill_md = Path(td) / "alpha" / "SKILL.md"
            entry = read_manifest(td).find_entry("alpha")
            self.assertEqual(result.succeeded, ("alpha",))
            self.assertIn("Do alpha, better.", skill_md.read_text(encoding="utf-8"))
            self.assertNotEqual(entry.hash, old_hash)
            self.assertEqual(entry.hash, compute_skill_hash(skill_md.read_bytes()))
            self.assertEqual(entry.version, "1.1.0")
            self.assertEqual(len(read_manifest(td).entries), 1)

    def test_user_edits_are_not_overwritten(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            installer = SkillInstaller(td, tool_version="0.4.0")
            installer.install(PROMPTS, ["alpha"])
            skill_md = Path(td) / "alpha" / "SKILL.md"
            skill_md.write_text(skill_md.read_text(encoding="utf-8") + "my notes\n", encoding="utf-8")
            edited = skill_md.read_bytes()
            manifest_before = (Path(td) / "manifest.json").read_bytes()

            result = installer.install(PROMPTS, ["alpha"])

            self.assertEqual(result.succeeded, ())
            self.assertEqual(result.skipped, ("alpha",))
            self.assertTrue(result.ok)
            self.assertTrue(any("user modifications detected" in m for m in result.messages))
            self.assertEqual(skill_md.read_bytes(), edited)
            self.assertEqual((Path(td) / "manifest.json").read_bytes(), manifest_before)

    def test_force_overwrites_user_edits(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            installer = SkillInstaller(td, tool_version="0.4.0")
            installer.install(PROMPTS, ["alpha"])
            skill_md = Path(td) / "alpha" / "SKILL.md"
            skill_md.write_text("scribbled over\n", encoding="utf-8")

            result = installer.install(PROMPTS, ["alpha"], force=True)

            self.assertEqual(result.succeeded, ("alpha",))
            self.assertIn("Do alpha.", skill_md.read_text(encoding="utf-8"))
            self.assertEqual(read_manifest(td).find_entry("alpha").hash, compute_skill_hash(skill_md.read_bytes()))

    def test_hand_authored_skill_is_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            skill_dir = Path(td) / "beta"
            skill_dir.mkdir()
            (skill_dir / "SKILL.md").write_text("# my own beta\n", encoding="utf-8")

            result = SkillInstaller(td).install(PROMPTS, ["beta"])

            self.assertEqual(result.skipped, ("beta",))
            self.assertTrue(any("not generated by promptdock" in m for m in result.messages))
            self.assertFalse((Path(td) / "manifest.json").exists())

    def test_unknown_and_unsafe_ids(self) -> None:
        prompts = PROMPTS + [Prompt(id="../escape", content="x")]
        with tempfile.TemporaryDirectory() as td:
            result = SkillInstaller(td).install(prompts, ["missing", "../escape", "alpha"])

            self.assertEqual(result.succeeded, ("alpha",))
            self.assertEqual(result.skipped, ("missing",))
            self.assertEqual(result.failed, ("../escape",))
            self.assertFalse(result.ok)
            self.assertFalse((Path(td).parent / "escape").exists())

    def test_write_failure_is_reported_per_id(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with patch("promptdock.skills.write_text_atomic", side_effect=OSError("read-only")):
                result = SkillInstaller(td).install(PROMPTS, ["alpha"])

            self.assertEqual(result.failed, ("alpha",))
            self.assertIsNone(read_manifest(td))


class TestUninstall(unittest.TestCase):
    def test_requires_confirmation_when_not_interactive(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            installer = SkillInstaller(td)
            installer.install(PROMPTS, ["alpha"])

            with self.assertRaises(ConfirmationRequiredError):
                installer.uninstall(["alpha"])

            self.assertTrue((Path(td) / "alpha" / "SKILL.md").exists())

    def test_interactive_session_needs_no_flag(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            installer = SkillInstaller(td)
            installer.install(PROMPTS, ["alpha"])

            result = installer.uninstall(["alpha"], interactive=True)

            self.assertEqual(result.succeeded, ("alpha",))

    def test_removes_directory_and_entry(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            installer = SkillInstaller(td)
            installer.install(PROMPTS, ["alpha", "beta"])

            result = installer.uninstall(["alpha", "ghost"], confirmed=True)

            self.assertEqual(result.succeeded, ("alpha",))
            self.assertEqual(result.skipped, ("ghost",))
            self.assertTrue(result.ok)
            self.assertFalse((Path(td) / "alpha").exists())
            self.assertTrue((Path(td) / "beta").exists())
            self.assertEqual([e.id for e in read_manifest(td).entries], ["beta"])

    def test_unsafe_id_touches_nothing(self) -> None:
        with tempfile.TemporaryDirectory() as parent:
            root = Path(parent) / "skills"
            victim = Path(parent) / "x"
            victim.mkdir()
            (victim / "keep.txt").write_text("keep", encoding="utf-8")

            result = SkillInstaller(root).uninstall(["../x"], confirmed=True)

            self.assertEqual(result.failed, ("../x",))
            self.assertFalse(result.ok)
            self.assertTrue((victim / "keep.txt").exists())

    def test_directory_without_manifest_entry_is_removed(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            (Path(td) / "loose").mkdir()

            result = SkillInstaller(td).uninstall(["loose"], confirmed=True)

            self.assertEqual(result.succeeded, ("loose",))
            self.assertFalse((Path(td) / "loose").exists())
            self.assertFalse((Path(td) / "manifest.json").exists())


if __name__ == "__main__":
    unittest.main()
