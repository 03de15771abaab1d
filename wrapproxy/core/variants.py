"""Variant definitions: which schema pair a proxy instance bridges."""

from dataclasses import dataclass
from typing import Optional

DEEPSEEK_ENDPOINT = "https://api.deepseek.com"
DEEPSEEK_BETA_ENDPOINT = "https://api.deepseek.com/beta"
DEEPSEEK_CHAT_MODEL = "deepseek-chat"
DEEPSEEK_CODER_MODEL = "deepseek-coder"
DEEPSEEK_REASONER_MODEL = "deepseek-reasoner"

POE_ENDPOINT = "https://api.poe.com"
CLAUDE_SONNET_MODEL = "claude-sonnet-4.5"

CHAT_COMPLETIONS_PATH = "/v1/chat/completions"


@dataclass(frozen=True)
class ModelProfile:
    """An endpoint/model pairing selectable from the command line."""

    endpoint: str
    model: str


@dataclass(frozen=True)
class Variant:
    """Policy flags for one inbound/outbound schema pair."""

    name: str
    api_key_env: str
    owned_by: str
    models: tuple[str, ...]
    profiles: dict[str, ModelProfile]
    default_profile: str
    fallback_model: Optional[str] = None
    fixed_path: Optional[str] = None
    forward_client_headers: bool = False
    normalize_paths: bool = False
    force_json_errors: bool = False

    def resolve_profile(self, name: Optional[str]) -> tuple[str, ModelProfile]:
        """Return the profile for ``name``, or the default one when unknown."""
        if name and name in self.profiles:
            return name, self.profiles[name]
        return self.default_profile, self.profiles[self.default_profile]


DEEPSEEK = Variant(
    name="deepseek",
    api_key_env="DEEPSEEK_API_KEY",
    owned_by="deepseek",
    models=(DEEPSEEK_CHAT_MODEL, DEEPSEEK_REASONER_MODEL, DEEPSEEK_CODER_MODEL),
    profiles={
        "chat": ModelProfile(endpoint=DEEPSEEK_ENDPOINT, model=DEEPSEEK_CHAT_MODEL),
        "coder": ModelProfile(endpoint=DEEPSEEK_BETA_ENDPOINT, model=DEEPSEEK_CODER_MODEL),
    },
    default_profile="chat",
    fallback_model=DEEPSEEK_REASONER_MODEL,
    forward_client_headers=True,
    normalize_paths=True,
    force_json_errors=True,
)

CLAUDE_RELAY = Variant(
    name="claude",
    api_key_env="POE_API_KEY",
    owned_by="anthropic",
    models=(CLAUDE_SONNET_MODEL,),
    profiles={
        "sonnet": ModelProfile(endpoint=POE_ENDPOINT, model=CLAUDE_SONNET_MODEL),
    },
    default_profile="sonnet",
    fixed_path=CHAT_COMPLETIONS_PATH,
)

VARIANTS = {variant.name: variant for variant in (DEEPSEEK, CLAUDE_RELAY)}


def get_variant(name: str) -> Variant:
    """Look up a variant by name (case-insensitive)."""
    key = (name or "").strip().lower()
    if key not in VARIANTS:
        raise KeyError(f"Unknown proxy variant '{name}'")
    return VARIANTS[key]
