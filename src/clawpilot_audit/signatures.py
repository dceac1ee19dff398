"""Signature registry and scanner for secrets and malicious code patterns.

READ-ONLY DETECTION: the patterns below are matched against file contents to
DETECT reverse shells, exfiltration and leaked credentials in installed skills,
plugins, transcripts and prompt files. Nothing is executed or interpreted.

Signatures are grouped by family because severity is decided per family
(intent class), not per pattern or match count. Adding a signature to an
existing family needs no change anywhere else.
"""

import logging
import re
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, NamedTuple, Optional

from pydantic import BaseModel, Field

from .files import MAX_FILE_SIZE, is_binary, read_file_bytes
from .models import Severity, worst

logger = logging.getLogger(__name__)

# --- Families ---

SECRET_EXPOSURE = "secret_exposure"
EXFILTRATION = "exfiltration"
OBFUSCATED_EXECUTION = "obfuscated_execution"
REVERSE_SHELL = "reverse_shell"
CREDENTIAL_THEFT = "credential_theft"

FAMILY_SEVERITY: dict[str, Severity] = {
    REVERSE_SHELL: Severity.CRITICAL,
    EXFILTRATION: Severity.CRITICAL,
    OBFUSCATED_EXECUTION: Severity.CRITICAL,
    CREDENTIAL_THEFT: Severity.WARNING,
    SECRET_EXPOSURE: Severity.WARNING,
}

FAMILY_LABELS: dict[str, str] = {
    REVERSE_SHELL: "Reverse shell",
    EXFILTRATION: "Exfiltration",
    OBFUSCATED_EXECUTION: "Obfuscated execution",
    CREDENTIAL_THEFT: "Env/credential theft",
    SECRET_EXPOSURE: "Secret exposure",
}

CODE_FAMILIES = (REVERSE_SHELL, EXFILTRATION, OBFUSCATED_EXECUTION, CREDENTIAL_THEFT)


class Signature(NamedTuple):
    """A named detection pattern."""

    name: str
    family: str
    pattern: re.Pattern
    severity_class: Severity
    description: str


def _sig(name: str, family: str, regex: str, description: str, flags: int = 0) -> Signature:
    return Signature(
        name=name,
        family=family,
        pattern=re.compile(regex, flags),
        severity_class=FAMILY_SEVERITY[family],
        description=description,
    )


BUILTIN_SIGNATURES: tuple[Signature, ...] = (
    # --- Reverse shell ---
    _sig("dev_tcp_socket", REVERSE_SHELL, r"/dev/(?:tcp|udp)/", "Bash /dev/tcp network redirection"),
    _sig("mkfifo_pipe", REVERSE_SHELL, r"\bmkfifo\b", "Named pipe, classic reverse shell plumbing"),
    _sig("interactive_bash_redirect", REVERSE_SHELL, r"\bbash\s+-i\s*>&", "Interactive bash redirected to a socket"),
    _sig("netcat_exec", REVERSE_SHELL, r"\b(?:nc|ncat|netcat)\s+(?:\S+\s+)*-[a-z]*e\b", "Netcat executing a program"),
    # --- Exfiltration ---
    _sig("curl_remote", EXFILTRATION, r"\bcurl\s+.*(?:https?|ftp|tcp)", "curl to a remote host"),
    _sig("wget_remote", EXFILTRATION, r"\bwget\s+.*(?:https?|ftp|tcp)", "wget to a remote host"),
    _sig("netcat_remote", EXFILTRATION, r"\b(?:nc|ncat)\s+.*(?:https?|ftp|tcp)", "netcat to a remote host"),
    # --- Obfuscated execution ---
    _sig("base64_decode", OBFUSCATED_EXECUTION, r"\bbase64\s+(?:-d\b|--decode\b)", "base64-decoded payload"),
    _sig("eval_variable", OBFUSCATED_EXECUTION, r"\beval\s+[\"']?\$", "eval of a shell variable"),
    _sig("exec_variable", OBFUSCATED_EXECUTION, r"\bexec\s+[\"']?\$", "exec of a shell variable"),
    _sig("pipe_to_shell", OBFUSCATED_EXECUTION, r"\b(?:curl|wget)\b[^|\n]*\|\s*(?:sudo\s+)?(?:ba|z)?sh\b",
         "Remote script piped into a shell"),
    _sig("python_b64_exec", OBFUSCATED_EXECUTION, r"\b(?:exec|eval)\s*\(\s*(?:base64\.)?b64decode\s*\(",
         "Python exec of a base64 payload"),
    # --- Env / credential theft ---
    _sig("printenv_dump", CREDENTIAL_THEFT, r"\bprintenv\b", "Dumps the environment"),
    _sig("env_redirect", CREDENTIAL_THEFT, r"\benv\s*>", "Environment written to a file"),
    _sig("env_var_piped_out", CREDENTIAL_THEFT, r"\becho\s+\$[A-Z_].*\|.*\b(?:curl|wget|nc)\b",
         "Environment variable piped to a network tool"),
    _sig("credential_file_read", CREDENTIAL_THEFT,
         r"(?:~|\$HOME)/\.(?:ssh/id_[a-z0-9]+|aws/credentials|openclaw/credentials)",
         "Reads a credential file"),
    # --- Secret exposure ---
    _sig("aws_access_key", SECRET_EXPOSURE, r"AKIA[A-Z0-9]{16}", "AWS Access Key"),
    _sig("aws_secret_key", SECRET_EXPOSURE,
         r"(?:aws_secret_access_key|AWS_SECRET_ACCESS_KEY|SecretAccessKey)[\"\s:=]+[A-Za-z0-9/+=]{40}",
         "AWS Secret Key"),
    _sig("github_pat", SECRET_EXPOSURE, r"ghp_[a-zA-Z0-9]{36}", "GitHub PAT"),
    _sig("github_oauth", SECRET_EXPOSURE, r"gho_[a-zA-Z0-9]{36}", "GitHub OAuth"),
    _sig("anthropic_api_key", SECRET_EXPOSURE, r"sk-ant-[a-zA-Z0-9_-]{20,}", "Anthropic API Key"),
    _sig("openai_api_key", SECRET_EXPOSURE, r"sk-[a-zA-Z0-9]{20,}", "OpenAI API Key"),
    _sig("slack_bot_token", SECRET_EXPOSURE, r"xoxb-[0-9]+-[a-zA-Z0-9]+", "Slack Bot Token"),
    _sig("slack_app_token", SECRET_EXPOSURE, r"xapp-[0-9]+-[a-zA-Z0-9]+", "Slack App Token"),
    _sig("discord_bot_token", SECRET_EXPOSURE, r"[MN][A-Za-z0-9]{23,}\.[a-zA-Z0-9_-]{6}\.[a-zA-Z0-9_-]{27,}",
         "Discord Bot Token"),
    _sig("private_key", SECRET_EXPOSURE, r"-----BEGIN (?:RSA |EC |OPENSSH )?PRIVATE KEY-----", "Private Key"),
    _sig("bearer_token", SECRET_EXPOSURE, r"Bearer [a-zA-Z0-9._-]{20,}", "Generic Bearer"),
    _sig("telegram_bot_token", SECRET_EXPOSURE, r"\b[0-9]{8,}:[A-Za-z0-9_-]{35}", "Telegram Bot Token"),
    _sig("google_api_key", SECRET_EXPOSURE, r"AIza[A-Za-z0-9_-]{35}", "Google API Key"),
)


class SignatureRegistry:
    """Immutable collection of signatures, grouped by family."""

    __slots__ = ("_signatures", "_by_name")

    def __init__(self, signatures: Iterable[Signature]):
        self._signatures: tuple[Signature, ...] = tuple(signatures)
        self._by_name = {sig.name: sig for sig in self._signatures}

    def __iter__(self):
        return iter(self._signatures)

    def __len__(self) -> int:
        return len(self._signatures)

    def get(self, name: str) -> Optional[Signature]:
        return self._by_name.get(name)

    def families(self) -> list[str]:
        seen: list[str] = []
        for sig in self._signatures:
            if sig.family not in seen:
                seen.append(sig.family)
        return seen

    def subset(self, *families: str) -> "SignatureRegistry":
        """Registry restricted to the given families."""
        return SignatureRegistry(sig for sig in self._signatures if sig.family in families)


DEFAULT_REGISTRY = SignatureRegistry(BUILTIN_SIGNATURES)


def _scan_lines(text: str, registry: SignatureRegistry, matched: set[str]) -> None:
    for line in text.splitlines():
        for sig in registry:
            if sig.name not in matched and sig.pattern.search(line):
                matched.add(sig.name)


def scan(file_bytes: bytes, registry: SignatureRegistry) -> frozenset[str]:
    """Match content line by line against every signature in the registry.

    Args:
        file_bytes: Raw content. Undecodable bytes are ignored.
        registry: Signatures to evaluate.

    Returns:
        Names of the signatures that matched at least once.
    """
    matched: set[str] = set()
    _scan_lines(file_bytes.decode("utf-8", errors="ignore"), registry, matched)
    return frozenset(matched)


# Bytes of an unterminated line carried into the next chunk
CHUNK_OVERLAP = 4096


def _segments(f: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    """Split a stream into chunks that end on line boundaries where possible.

    A line longer than chunk_size is cut, and its last CHUNK_OVERLAP bytes are
    repeated at the start of the next segment.
    """
    tail = b""
    while True:
        chunk = f.read(chunk_size)
        if not chunk:
            break
        data = tail + chunk
        cut = data.rfind(b"\n") + 1
        if cut:
            yield data[:cut]
            tail = data[cut:]
        else:
            yield data
            tail = data[-CHUNK_OVERLAP:]
    if tail:
        yield tail


def scan_stream(path: str | Path, registry: SignatureRegistry, chunk_size: int = MAX_FILE_SIZE) -> frozenset[str]:
    """Scan a whole file in bounded chunks.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    matched: set[str] = set()
    with open(path, "rb") as f:
        for segment in _segments(f, chunk_size):
            _scan_lines(segment.decode("utf-8", errors="ignore"), registry, matched)
    return frozenset(matched)


def describe(matched: Iterable[str], registry: SignatureRegistry) -> list[str]:
    """`name: description` for each match, sorted by name."""
    details = []
    for name in sorted(matched):
        sig = registry.get(name)
        details.append(f"{name}: {sig.description}" if sig is not None else name)
    return details


def classify(matched: Iterable[str], registry: SignatureRegistry) -> Severity:
    """Severity of a set of matches: the worst family severity, PASS when empty."""
    severities = []
    for name in matched:
        sig = registry.get(name)
        if sig is not None:
            severities.append(FAMILY_SEVERITY.get(sig.family, sig.severity_class))
    return worst(severities)


def matched_families(matched: Iterable[str], registry: SignatureRegistry) -> list[str]:
    """Families hit by the matches, in registry order."""
    hit = set()
    for name in matched:
        sig = registry.get(name)
        if sig is not None:
            hit.add(sig.family)
    return [family for family in registry.families() if family in hit]


class FileScanResult(BaseModel):
    """Signature scan outcome for one file."""

    path: Path = Field(description="Scanned file")
    matched: list[str] = Field(default_factory=list, description="Signature names that fired, sorted")
    severity: Severity = Field(default=Severity.PASS, description="Family-based severity of the matches")
    skipped: Optional[str] = Field(default=None, description="Why the file was not scanned (binary, unreadable, partially read)")


def scan_file(path: str | Path, registry: SignatureRegistry, max_bytes: int = MAX_FILE_SIZE) -> FileScanResult:
    """Scan one file. Binary or unreadable files are reported as skipped, never raised.

    Content past max_bytes is scanned in further chunks of max_bytes, so a
    payload at the end of a large file is still seen.
    """
    path = Path(path)
    try:
        data = read_file_bytes(path, max_bytes)
    except OSError as e:
        logger.debug(f"Skipping unreadable file {path}: {e}")
        return FileScanResult(path=path, severity=Severity.INFO, skipped=f"unreadable ({e.strerror or e})")

    if is_binary(data):
        return FileScanResult(path=path, severity=Severity.INFO, skipped="binary content")

    if len(data) < max_bytes:
        matched = scan(data, registry)
    else:
        try:
            matched = scan_stream(path, registry, chunk_size=max_bytes)
        except OSError as e:
            logger.debug(f"Could not finish reading {path}: {e}")
            return FileScanResult(path=path, severity=Severity.INFO, skipped=f"partially read ({e.strerror or e})")

    return FileScanResult(
        path=path,
        matched=sorted(matched),
        severity=classify(matched, registry),
    )
