"""System dependency checker for vcf-site-finalizer."""

import importlib
import platform
import sys
from dataclasses import dataclass


@dataclass
class CheckResult:
    """Result of a dependency check."""

    name: str
    passed: bool
    version: str | None = None
    message: str | None = None


INSTALL_INSTRUCTIONS = {
    "python": {
        "darwin": "brew install python@3.11",
        "linux": "sudo apt install python3.11 or use pyenv",
        "windows": "Download from https://www.python.org/downloads/",
    },
    "cyvcf2": {
        "darwin": "pip install cyvcf2",
        "linux": "pip install cyvcf2 (or conda install -c bioconda cyvcf2)",
        "windows": "Use WSL; cyvcf2 has no native Windows wheels",
    },
    "scipy": {
        "darwin": "pip install scipy",
        "linux": "pip install scipy",
        "windows": "pip install scipy",
    },
}


class DependencyChecker:
    """Check system dependencies for vcf-site-finalizer."""

    def check_python(self) -> CheckResult:
        """Check Python version is 3.11+."""
        version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
        passed = sys.version_info >= (3, 11)

        return CheckResult(
            name="Python",
            passed=passed,
            version=version,
            message=None if passed else "Python 3.11+ required",
        )

    def _check_module(self, module_name: str) -> CheckResult:
        try:
            module = importlib.import_module(module_name)
        except ImportError:
            return CheckResult(
                name=module_name,
                passed=False,
                message=f"{module_name} not installed. Install with: "
                f"{self.get_install_instructions(module_name)}",
            )
        return CheckResult(
            name=module_name,
            passed=True,
            version=getattr(module, "__version__", "unknown"),
        )

    def check_cyvcf2(self) -> CheckResult:
        """Check if cyvcf2 is installed."""
        return self._check_module("cyvcf2")

    def check_scipy(self) -> CheckResult:
        """Check if scipy is installed (Fisher exact test)."""
        return self._check_module("scipy")

    def check_all(self) -> list[CheckResult]:
        """Run all dependency checks.

        Returns:
            List of CheckResult for each dependency.
        """
        return [
            self.check_python(),
            self.check_cyvcf2(),
            self.check_scipy(),
        ]

    def get_install_instructions(self, dependency: str, os_platform: str | None = None) -> str:
        """Get installation instructions for a dependency.

        Args:
            dependency: Name of the dependency (e.g., 'cyvcf2', 'python').
            os_platform: Platform name (darwin, linux, windows). Auto-detected if None.

        Returns:
            Installation instructions string.
        """
        if os_platform is None:
            os_platform = platform.system().lower()
            if os_platform not in ("darwin", "linux", "windows"):
                os_platform = "linux"

        instructions = INSTALL_INSTRUCTIONS.get(dependency, {})
        return instructions.get(os_platform, f"Please install {dependency}")

    def all_passed(self) -> bool:
        return all(r.passed for r in self.check_all())


def check_all() -> list[CheckResult]:
    """Convenience function to run all dependency checks."""
    return DependencyChecker().check_all()
