import os
import sys

import pytest


def _running_as_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


needs_permissions = pytest.mark.skipif(
    sys.platform == "win32" or _running_as_root(),
    reason="permission bits are not enforced here",
)


@pytest.fixture
def project_tree(tmp_path):
    """
    Creates a small mixed-language project:
    - 3 matching sources at different depths
    - sources hidden inside ignored, dot-prefixed and unmatched places
    """
    root = tmp_path / "project"
    (root / "src" / "components").mkdir(parents=True)
    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / ".git").mkdir()
    (root / "Docs").mkdir()

    (root / "Program.cs").write_text("class Program {}\n", encoding="utf-8")
    (root / "package.json").write_text('{"name": "demo"}\n', encoding="utf-8")
    (root / "src" / "components" / "App.tsx").write_text("export const App = 1;\n", encoding="utf-8")

    # Never collected
    (root / "node_modules" / "lib" / "index.ts").write_text("export {};\n", encoding="utf-8")
    (root / ".git" / "Hook.cs").write_text("class Hook {}\n", encoding="utf-8")
    (root / "Docs" / "Guide.cs").write_text("class Guide {}\n", encoding="utf-8")
    (root / "src" / ".Secret.cs").write_text("class Secret {}\n", encoding="utf-8")
    (root / "README.md").write_text("# demo\n", encoding="utf-8")
    return root
