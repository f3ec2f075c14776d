"""
Signed envelope for Node RPC calls.

Every call is sent as a single HS256 JWT whose ``jwt_info`` claim carries the
serialized call descriptor, and every reply comes back as a JWT signed with
the same API key whose ``jwt_info.result`` holds the value. A reply is never
read before its signature has been verified.
"""
import os
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Dict, Any, Union

import jwt
from pydantic import ValidationError

from ..models import ReplyInfo
from .exceptions import (
    NodeRpcEncodingError, NodeRpcAuthenticationError, NodeRpcShapeError,
    TokenExpiredError, ReplyMismatchError
)

# Configure logger
logger = logging.getLogger(__name__)

# Claim names are part of the wire contract
JWT_INFO_CLAIM = "jwt_info"
RESULT_FIELD = "result"

SIGNING_ALGORITHM = "HS256"
HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]

DEFAULT_TOKEN_TTL = 60


class _NoResultType(Enum):
    NO_RESULT = "NO_RESULT"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_RESULT"


# Returned when the endpoint answers with status=False
NO_RESULT = _NoResultType.NO_RESULT


def get_token_ttl() -> int:
    """
    Get the outbound credential lifetime from environment variables.

    Returns:
        Lifetime in seconds (ADENINE_TOKEN_TTL, default 60)
    """
    raw = os.environ.get("ADENINE_TOKEN_TTL", str(DEFAULT_TOKEN_TTL))
    try:
        ttl = int(raw)
    except ValueError:
        logger.warning(f"Invalid ADENINE_TOKEN_TTL value: {raw}, using {DEFAULT_TOKEN_TTL}s")
        return DEFAULT_TOKEN_TTL
    if ttl <= 0:
        logger.warning(f"ADENINE_TOKEN_TTL must be positive, got {ttl}; using {DEFAULT_TOKEN_TTL}s")
        return DEFAULT_TOKEN_TTL
    return ttl


@dataclass(frozen=True)
class CallDescriptor:
    """
    Identifies one remote call: where it goes and what it asks for.

    Attributes:
        network: Network name (e.g. "mainnet", "testnet")
        chain: Chain identifier (see ``Chain``)
        method: Remote procedure name
        params: Mapping, sequence or scalar passed to the procedure
    """
    network: str
    chain: str
    method: str
    params: Any = None

    def to_json(self) -> str:
        """
        Serialize the descriptor the way the endpoint expects it.

        Returns:
            Compact JSON with keys in network, chain, method, params order

        Raises:
            NodeRpcEncodingError: If params cannot be serialized
        """
        try:
            return json.dumps(
                {
                    "network": self.network,
                    "chain": self.chain,
                    "method": self.method,
                    "params": self.params,
                },
                separators=(",", ":"),
                allow_nan=False,
            )
        except (TypeError, ValueError) as e:
            raise NodeRpcEncodingError(f"Cannot serialize params for '{self.method}': {e}") from e

    @classmethod
    def from_json(cls, data: Union[str, Dict[str, Any]]) -> "CallDescriptor":
        """
        Create a CallDescriptor from its JSON form.

        Args:
            data: JSON string or already-parsed mapping

        Returns:
            CallDescriptor instance

        Raises:
            NodeRpcShapeError: If required fields are missing
        """
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError as e:
                raise NodeRpcShapeError(f"Call descriptor is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise NodeRpcShapeError("Call descriptor must be a JSON object")
        missing = [k for k in ("network", "chain", "method") if k not in data]
        if missing:
            raise NodeRpcShapeError(f"Call descriptor is missing fields: {', '.join(missing)}")
        return cls(
            network=data["network"],
            chain=data["chain"],
            method=data["method"],
            params=data.get("params"),
        )


def _expiration(ttl: Optional[int]) -> datetime:
    return datetime.now(tz=timezone.utc) + timedelta(seconds=ttl if ttl is not None else get_token_ttl())


def _check_key(api_key: Union[str, bytes], verifying: bool = False) -> None:
    if not api_key:
        if verifying:
            raise NodeRpcAuthenticationError("Cannot verify a token without an API key")
        raise NodeRpcEncodingError("API key must be a non-empty string")


def encode_request(
    api_key: Union[str, bytes],
    descriptor: CallDescriptor,
    ttl: Optional[int] = None
) -> str:
    """
    Build the signed credential sent as the sole payload of a call.

    Args:
        api_key: Secret shared with the endpoint
        descriptor: The call to sign
        ttl: Lifetime in seconds (defaults to ADENINE_TOKEN_TTL)

    Returns:
        Signed JWT string

    Raises:
        NodeRpcEncodingError: If the key is empty or params are not serializable
    """
    _check_key(api_key)
    claims = {
        JWT_INFO_CLAIM: descriptor.to_json(),
        "exp": _expiration(ttl),
    }
    try:
        return jwt.encode(claims, api_key, algorithm=SIGNING_ALGORITHM)
    except (TypeError, ValueError, jwt.PyJWTError) as e:
        raise NodeRpcEncodingError(f"Failed to sign request for '{descriptor.method}': {e}") from e


def _verify(
    api_key: Union[str, bytes],
    token: str,
    kind: str = "reply",
    require_exp: bool = False
) -> Dict[str, Any]:
    """Verify signature, algorithm family and expiration; return the claims."""
    _check_key(api_key, verifying=True)
    try:
        header = jwt.get_unverified_header(token)
    except jwt.DecodeError as e:
        logger.warning(f"Invalid JWT format in {kind} - could not decode header")
        raise NodeRpcAuthenticationError(f"Malformed {kind} token: {e}") from e

    algorithm = header.get("alg") or ""
    if algorithm not in HMAC_ALGORITHMS:
        logger.warning(f"Unexpected signing method in {kind}: {algorithm!r}. Rejecting token.")
        raise NodeRpcAuthenticationError(f"Unexpected signing method: {algorithm!r}")

    options = {"verify_signature": True, "verify_exp": True}
    if require_exp:
        options["require"] = ["exp"]
    try:
        return jwt.decode(token, api_key, algorithms=HMAC_ALGORITHMS, options=options)
    except jwt.ExpiredSignatureError as e:
        logger.warning(f"{kind.capitalize()} token has expired")
        raise TokenExpiredError(f"{kind.capitalize()} token has expired") from e
    except jwt.InvalidSignatureError as e:
        logger.warning(f"Invalid {kind} token signature")
        raise NodeRpcAuthenticationError(f"Invalid {kind} token signature") from e
    except jwt.PyJWTError as e:
        logger.warning(f"{kind.capitalize()} token validation failed: {e}")
        raise NodeRpcAuthenticationError(f"{kind.capitalize()} token validation failed: {e}") from e


def _check_echo(info: ReplyInfo, expected: CallDescriptor) -> None:
    for field in ("network", "chain", "method"):
        received = getattr(info, field)
        wanted = getattr(expected, field)
        if received is not None and received != wanted:
            logger.warning(f"Reply echoes {field}={received!r}, request had {wanted!r}")
            raise ReplyMismatchError(
                f"Reply {field} {received!r} does not match request {field} {wanted!r}",
                field, wanted, received
            )


def decode_reply(
    api_key: Union[str, bytes],
    output: str,
    status: bool,
    expected: Optional[CallDescriptor] = None
) -> Any:
    """
    Verify a signed reply and unwrap its result.

    Args:
        api_key: Secret shared with the endpoint
        output: Signed reply string from the endpoint
        status: Status flag from the endpoint
        expected: Request descriptor to cross-check against the reply's echo

    Returns:
        The ``jwt_info.result`` value, or ``NO_RESULT`` when status is False

    Raises:
        NodeRpcAuthenticationError: If the key is empty or the signature, algorithm
            or expiration is invalid
        TokenExpiredError: If the reply is expired
        ReplyMismatchError: If the echoed call metadata differs from ``expected``
        NodeRpcShapeError: If ``jwt_info`` or ``result`` is missing
    """
    if not status:
        return NO_RESULT

    claims = _verify(api_key, output)

    if JWT_INFO_CLAIM not in claims:
        raise NodeRpcShapeError(f"Reply token has no '{JWT_INFO_CLAIM}' claim")
    raw_info = claims[JWT_INFO_CLAIM]
    if isinstance(raw_info, str):
        try:
            raw_info = json.loads(raw_info)
        except ValueError as e:
            raise NodeRpcShapeError(f"Reply '{JWT_INFO_CLAIM}' is not valid JSON: {e}") from e
    if not isinstance(raw_info, dict):
        raise NodeRpcShapeError(f"Reply '{JWT_INFO_CLAIM}' must be an object")

    try:
        info = ReplyInfo.model_validate(raw_info)
    except ValidationError as e:
        raise NodeRpcShapeError(f"Reply '{JWT_INFO_CLAIM}' has an unexpected shape: {e}") from e

    if expected is not None:
        _check_echo(info, expected)

    return info.result


def decode_request(api_key: Union[str, bytes], credential: str) -> CallDescriptor:
    """
    Verify an outbound credential the way the endpoint does.

    Unlike replies, requests must carry an ``exp`` claim.

    Args:
        api_key: Secret shared with the caller
        credential: Signed request string

    Returns:
        The embedded CallDescriptor

    Raises:
        NodeRpcAuthenticationError: If verification fails or ``exp`` is missing
        TokenExpiredError: If the request is past its expiration
        NodeRpcShapeError: If the descriptor is missing or malformed
    """
    claims = _verify(api_key, credential, kind="request", require_exp=True)
    if JWT_INFO_CLAIM not in claims:
        raise NodeRpcShapeError(f"Request token has no '{JWT_INFO_CLAIM}' claim")
    return CallDescriptor.from_json(claims[JWT_INFO_CLAIM])


def encode_reply(
    api_key: Union[str, bytes],
    result: Any,
    descriptor: Optional[CallDescriptor] = None,
    ttl: Optional[int] = None
) -> str:
    """
    Build a signed reply carrying ``result``.

    Args:
        api_key: Secret shared with the caller
        result: Value to return
        descriptor: Request being answered; its network, chain and method are echoed
        ttl: Lifetime in seconds (defaults to ADENINE_TOKEN_TTL)

    Returns:
        Signed JWT string
    """
    _check_key(api_key)
    info: Dict[str, Any] = {RESULT_FIELD: result}
    if descriptor is not None:
        info.update(network=descriptor.network, chain=descriptor.chain, method=descriptor.method)
    try:
        return jwt.encode(
            {JWT_INFO_CLAIM: info, "exp": _expiration(ttl)},
            api_key,
            algorithm=SIGNING_ALGORITHM
        )
    except (TypeError, ValueError) as e:
        raise NodeRpcEncodingError(f"Cannot serialize reply result: {e}") from e
