"""Proof payload validation.

Each proof method has its own payload variant (see ``models.proof``);
validation picks the variant from the method, checks the method-specific
fields and returns the typed payload. Nothing is persisted here.
"""

from typing import Any, Optional, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import ProofMethod, ProofPayload, RepositoryCommitProof

# Method names used by older clients
METHOD_ALIASES = {
    "gps": ProofMethod.GEOLOCATION,
    "github": ProofMethod.REPOSITORY_COMMIT,
    "strava": ProofMethod.EXTERNAL_ACTIVITY,
}

_PAYLOAD_ADAPTER: TypeAdapter = TypeAdapter(ProofPayload)


def _custom_data(payload: dict[str, Any]) -> dict[str, Any]:
    """Custom proofs accept any structured payload.

    A payload of exactly {"data": {...}} is already in wrapped form; anything
    else is taken whole as the proof data.
    """
    fields = {k: v for k, v in payload.items() if k != "method"}
    if set(fields) == {"data"} and isinstance(fields["data"], dict):
        return fields["data"]
    return fields


def normalize_method(method: Union[str, ProofMethod]) -> ProofMethod:
    """Map a method name (or legacy alias) to a ProofMethod."""
    if isinstance(method, ProofMethod):
        return method
    key = str(method).strip().lower()
    if key in METHOD_ALIASES:
        return METHOD_ALIASES[key]
    try:
        return ProofMethod(key)
    except ValueError:
        raise ValidationError(f"Invalid proof method: {method!r}", field="method") from None


class ProofValidator:
    """Validates proof payloads against their declared method."""

    def __init__(self, recognized_repo_hosts: Optional[list[str]] = None):
        self.recognized_repo_hosts = [h.lower() for h in (recognized_repo_hosts or ["github.com"])]

    def validate(self, method: Union[str, ProofMethod], payload: dict[str, Any]) -> ProofPayload:
        """Validate ``payload`` for ``method``.

        Returns:
            The typed payload variant for the method

        Raises:
            ValidationError: naming the first missing or invalid field
        """
        proof_method = normalize_method(method)
        if not isinstance(payload, dict):
            raise ValidationError("Proof payload must be an object", field="payload")

        if proof_method == ProofMethod.CUSTOM:
            data = {"data": _custom_data(payload)}
        else:
            data = dict(payload)
        data["method"] = proof_method.value
        try:
            parsed = _PAYLOAD_ADAPTER.validate_python(data)
        except PydanticValidationError as e:
            first = e.errors()[0]
            # loc is (variant_tag, field, ...) for discriminated unions
            loc = [str(part) for part in first.get("loc", ()) if str(part) != proof_method.value]
            field = loc[0] if loc else "payload"
            raise ValidationError(
                f"{proof_method.value} proof: invalid {field}: {first.get('msg', 'invalid value')}",
                field=field,
            ) from None

        if isinstance(parsed, RepositoryCommitProof):
            url = parsed.repository_url.lower()
            if not any(host in url for host in self.recognized_repo_hosts):
                raise ValidationError(
                    f"repository_commit proof: repository_url must be hosted on one of "
                    f"{', '.join(self.recognized_repo_hosts)}",
                    field="repository_url",
                )

        return parsed

    def validate_for_wish(
        self,
        declared: ProofMethod,
        method: Union[str, ProofMethod],
        payload: dict[str, Any],
    ) -> ProofPayload:
        """Validate a payload and check it matches the wish's declared proof method."""
        proof_method = normalize_method(method)
        if proof_method != declared:
            raise ValidationError(
                f"Wish expects {declared.value} proof, got {proof_method.value}",
                field="method",
            )
        return self.validate(proof_method, payload)
