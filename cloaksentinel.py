#!/usr/bin/env python3
"""
Cloak Sentinel v1.0.0 - Cloaking Detection & Subdomain Probe Scanner
====================================================================
Probes one URL under several simulated request contexts and flags cloaking:
- Redirect detection without following (Location resolved to an absolute URL)
- User-Agent spoofing (desktop, mobile, Googlebot, Bingbot)
- Referrer spoofing (major referring sites)
- Geolocation spoofing (X-Forwarded-For / CF-IPCountry / X-Real-IP claims)
- Brute-force HTTPS liveness checks over common subdomain labels
- One engine behind a pluggable transport: httpx (default) or aiohttp
- JSON / HTML / Markdown / CSV reports and an HTTP API (POST /api/analyze)

Divergence is judged on response byte length only. This is a heuristic, not
proof: timestamps, nonces, ad slots and session tokens change the length of a
page without any cloaking going on.

License: MIT
"""

import argparse
import asyncio
import csv
import dataclasses
import hashlib
import html
import ipaddress
import json
import logging
import socket
import ssl
import sys
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import urljoin, urlparse

# Third-party imports
import aiohttp
import httpx
from aiohttp import web
from colorama import Fore, Style, init as colorama_init
from rich.console import Console
from rich.table import Table

colorama_init(autoreset=True)

logger = logging.getLogger(__name__)

# ============================================================================
# CONSTANTS & CONFIGURATION
# ============================================================================

VERSION = "1.0.0"
BANNER = f"""
╔══════════════════════════════════════════════════════════════╗
║                    Cloak Sentinel v{VERSION}                     ║
║          Cloaking Detection & Subdomain Probe Scanner        ║
╚══════════════════════════════════════════════════════════════╝
"""

DEFAULT_PROBE_TIMEOUT = 5.0
DEFAULT_SUBDOMAIN_TIMEOUT = 3.0
DEFAULT_DEADLINE = 60.0
DEFAULT_CONCURRENCY = 20

# label -> User-Agent; the two crawler entries are what cloakers key on
DEFAULT_USER_AGENTS = {
    "desktop": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    ),
    "mobile": (
        "Mozilla/5.0 (iPhone; CPU iPhone OS 14_0 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/14.0 Mobile/15E148 Safari/604.1"
    ),
    "googlebot": "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
    "bingbot": "Mozilla/5.0 (compatible; Bingbot/2.0; +http://www.bing.com/bingbot.htm)",
}

DEFAULT_REFERRERS = [
    "https://www.google.com",
    "https://www.facebook.com",
    "https://www.twitter.com",
    "https://www.instagram.com",
    "https://www.youtube.com",
]

# (country, claimed client IP)
DEFAULT_GEOLOCATIONS = [
    ("US", "8.8.8.8"),
    ("BR", "200.160.0.0"),
    ("UK", "1.1.1.1"),
    ("DE", "9.9.9.9"),
]

COMMON_SUBDOMAINS = [
    "www", "mail", "ftp", "admin", "blog", "shop", "store",
    "api", "cdn", "static", "img", "images", "media",
    "support", "help", "docs", "forum", "community",
    "dev", "test", "staging", "beta", "alpha",
]

# Substrings used to tell TLS and DNS failures apart from plain connection errors
TLS_ERROR_MARKERS = ("ssl", "certificate", "tls")
DNS_ERROR_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "no address associated",
    "temporary failure in name resolution",
    "name resolution",
)

# ============================================================================
# DATA MODELS
# ============================================================================

class Dimension(Enum):
    BASELINE = "baseline"
    USER_AGENT = "user_agent"
    REFERRER = "referrer"
    GEOLOCATION = "geolocation"


# Order matters: techniques are reported in this order
SPOOFING_DIMENSIONS = (Dimension.USER_AGENT, Dimension.REFERRER, Dimension.GEOLOCATION)

REDIRECT_TECHNIQUE = "Redirect"
TECHNIQUE_LABELS = {
    Dimension.USER_AGENT: "User-Agent Spoofing",
    Dimension.REFERRER: "Referrer Spoofing",
    Dimension.GEOLOCATION: "Geolocation Spoofing",
}


class ErrorKind(Enum):
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    DNS = "dns"
    TLS = "tls"
    INVALID_URL = "invalid_url"
    REDIRECT_POLICY = "redirect_policy"
    DEADLINE = "deadline"
    UNKNOWN = "unknown"


class InvalidInputError(ValueError):
    """Missing or malformed target URL. Raised before any probe is sent."""


class TransportError(Exception):
    """A transport failure, already classified into an ErrorKind."""

    def __init__(self, kind: ErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind


@dataclass(frozen=True)
class GeoClaim:
    country: str
    ip: str

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "X-Forwarded-For": self.ip,
            "CF-IPCountry": self.country,
            "X-Real-IP": self.ip,
        }


@dataclass(frozen=True)
class RequestProfile:
    """One simulated requester: which dimension it varies and the headers it sends."""
    dimension: Dimension
    label: str
    headers: Mapping[str, str] = field(default_factory=dict)

    def to_dict(self):
        return {
            "dimension": self.dimension.value,
            "label": self.label,
            "headers": dict(self.headers),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RequestProfile":
        return cls(
            dimension=Dimension(data["dimension"]),
            label=data["label"],
            headers=dict(data.get("headers") or {}),
        )


@dataclass(frozen=True)
class RawResponse:
    """What a transport hands back. Header names are lower-cased."""
    url: str
    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


@dataclass(frozen=True)
class ResponseSignature:
    """Comparable fingerprint of one probe attempt, successful or not"""
    profile: RequestProfile
    succeeded: bool
    status_code: Optional[int] = None
    content_length: Optional[int] = None
    content_hash: Optional[str] = None
    elapsed: Optional[float] = None
    error: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    @classmethod
    def from_response(cls, profile: RequestProfile, response: RawResponse,
                      elapsed: Optional[float] = None) -> "ResponseSignature":
        return cls(
            profile=profile,
            succeeded=True,
            status_code=response.status_code,
            content_length=len(response.body),
            content_hash=hashlib.sha256(response.body).hexdigest(),
            elapsed=elapsed,
        )

    @classmethod
    def failure(cls, profile: RequestProfile, kind: ErrorKind,
                message: Optional[str] = None) -> "ResponseSignature":
        return cls(profile=profile, succeeded=False, error=kind, error_message=message)

    def to_dict(self):
        return {
            "profile": self.profile.to_dict(),
            "succeeded": self.succeeded,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "content_hash": self.content_hash,
            "elapsed": round(self.elapsed, 3) if self.elapsed is not None else None,
            "error": self.error.value if self.error else None,
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResponseSignature":
        return cls(
            profile=RequestProfile.from_dict(data["profile"]),
            succeeded=bool(data["succeeded"]),
            status_code=data.get("status_code"),
            content_length=data.get("content_length"),
            content_hash=data.get("content_hash"),
            elapsed=data.get("elapsed"),
            error=ErrorKind(data["error"]) if data.get("error") else None,
            error_message=data.get("error_message"),
        )


@dataclass(frozen=True)
class DimensionResult:
    dimension: Dimension
    tested_count: int
    responded_count: int
    distinct_content_lengths: FrozenSet[int]
    different_content: bool
    signatures: Tuple[ResponseSignature, ...] = ()

    @property
    def partial(self) -> bool:
        """No probe of this dimension came back; the result carries no evidence."""
        return self.responded_count == 0

    def to_dict(self):
        return {
            "dimension": self.dimension.value,
            "tested_count": self.tested_count,
            "responded_count": self.responded_count,
            "distinct_content_lengths": sorted(self.distinct_content_lengths),
            "different_content": self.different_content,
            "partial": self.partial,
            "signatures": [s.to_dict() for s in self.signatures],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DimensionResult":
        return cls(
            dimension=Dimension(data["dimension"]),
            tested_count=int(data["tested_count"]),
            responded_count=int(data["responded_count"]),
            distinct_content_lengths=frozenset(data.get("distinct_content_lengths") or ()),
            different_content=bool(data["different_content"]),
            signatures=tuple(ResponseSignature.from_dict(s) for s in data.get("signatures") or ()),
        )


@dataclass(frozen=True)
class RedirectInfo:
    requested_url: str
    has_redirect: bool = False
    final_url: Optional[str] = None
    status: Optional[int] = None

    def to_dict(self):
        return {
            "requested_url": self.requested_url,
            "has_redirect": self.has_redirect,
            "final_url": self.final_url,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RedirectInfo":
        return cls(
            requested_url=data["requested_url"],
            has_redirect=bool(data.get("has_redirect")),
            final_url=data.get("final_url"),
            status=data.get("status"),
        )


@dataclass(frozen=True)
class SubdomainFinding:
    label: str
    url: str
    reachable: bool
    status: Optional[int] = None
    error: Optional[ErrorKind] = None

    def to_dict(self):
        return {
            "label": self.label,
            "url": self.url,
            "reachable": self.reachable,
            "status": self.status,
            "error": self.error.value if self.error else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubdomainFinding":
        return cls(
            label=data["label"],
            url=data["url"],
            reachable=bool(data["reachable"]),
            status=data.get("status"),
            error=ErrorKind(data["error"]) if data.get("error") else None,
        )


@dataclass
class DetectionReport:
    """Overall analysis result for one URL"""
    original_url: str
    cloaker_detected: bool
    real_url: Optional[str]
    techniques: List[str]
    redirect: RedirectInfo
    dimension_results: Dict[Dimension, DimensionResult]
    subdomains: List[SubdomainFinding] = field(default_factory=list)
    base_domain: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    duration: float = 0.0

    @classmethod
    def assemble(cls, original_url: str, redirect: RedirectInfo,
                 dimension_results: Dict[Dimension, DimensionResult],
                 subdomains: List[SubdomainFinding], base_domain: Optional[str] = None,
                 started_at: Optional[datetime] = None, duration: float = 0.0) -> "DetectionReport":
        """Derive the verdict and technique list from the collected signals."""
        techniques = []
        if redirect.has_redirect:
            techniques.append(REDIRECT_TECHNIQUE)
        for dimension in SPOOFING_DIMENSIONS:
            result = dimension_results.get(dimension)
            label = TECHNIQUE_LABELS[dimension]
            if result is not None and result.different_content and label not in techniques:
                techniques.append(label)

        return cls(
            original_url=original_url,
            cloaker_detected=bool(techniques),
            real_url=redirect.final_url if redirect.has_redirect else None,
            techniques=techniques,
            redirect=redirect,
            dimension_results=dimension_results,
            subdomains=list(subdomains),
            base_domain=base_domain,
            started_at=started_at or datetime.now(),
            duration=duration,
        )

    @property
    def reachable_subdomains(self) -> List[SubdomainFinding]:
        return [s for s in self.subdomains if s.reachable]

    def to_dict(self):
        return {
            "original_url": self.original_url,
            "cloaker_detected": self.cloaker_detected,
            "real_url": self.real_url,
            "techniques": list(self.techniques),
            "base_domain": self.base_domain,
            "started_at": self.started_at.isoformat(),
            "duration": round(self.duration, 3),
            "redirect": self.redirect.to_dict(),
            "analysis": {
                dimension.value: result.to_dict()
                for dimension, result in self.dimension_results.items()
            },
            "subdomains": [s.to_dict() for s in self.subdomains],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectionReport":
        return cls(
            original_url=data["original_url"],
            cloaker_detected=bool(data["cloaker_detected"]),
            real_url=data.get("real_url"),
            techniques=list(data.get("techniques") or []),
            redirect=RedirectInfo.from_dict(data["redirect"]),
            dimension_results={
                Dimension(key): DimensionResult.from_dict(value)
                for key, value in (data.get("analysis") or {}).items()
            },
            subdomains=[SubdomainFinding.from_dict(s) for s in data.get("subdomains") or []],
            base_domain=data.get("base_domain"),
            started_at=datetime.fromisoformat(data["started_at"]) if data.get("started_at") else datetime.now(),
            duration=float(data.get("duration") or 0.0),
        )


@dataclass
class DetectorConfig:
    """Probe lists and limits for one detector. Every list can be replaced."""
    user_agents: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_USER_AGENTS))
    referrers: List[str] = field(default_factory=lambda: list(DEFAULT_REFERRERS))
    geolocations: List[GeoClaim] = field(
        default_factory=lambda: [GeoClaim(country, ip) for country, ip in DEFAULT_GEOLOCATIONS]
    )
    subdomain_labels: List[str] = field(default_factory=lambda: list(COMMON_SUBDOMAINS))
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    subdomain_timeout: float = DEFAULT_SUBDOMAIN_TIMEOUT
    deadline: Optional[float] = DEFAULT_DEADLINE
    max_concurrency: int = DEFAULT_CONCURRENCY
    verify_ssl: bool = False
    enumerate_subdomains: bool = True
    transport: str = "httpx"

    def __post_init__(self):
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if self.probe_timeout <= 0 or self.subdomain_timeout <= 0:
            raise ValueError("timeouts must be positive")
        if self.deadline is not None and self.deadline <= 0:
            raise ValueError("deadline must be positive (or None to disable it)")
        if self.transport not in TRANSPORTS:
            raise ValueError(f"Unknown transport '{self.transport}' (choose from {', '.join(TRANSPORTS)})")

    def profiles_for(self, dimension: Dimension) -> List[RequestProfile]:
        if dimension is Dimension.USER_AGENT:
            return [
                RequestProfile(dimension, label, {"User-Agent": ua})
                for label, ua in self.user_agents.items()
            ]
        if dimension is Dimension.REFERRER:
            return [RequestProfile(dimension, ref, {"Referer": ref}) for ref in self.referrers]
        if dimension is Dimension.GEOLOCATION:
            return [
                RequestProfile(dimension, f"{claim.country} ({claim.ip})", claim.headers)
                for claim in self.geolocations
            ]
        return [RequestProfile(Dimension.BASELINE, "baseline")]

    def with_wordlist(self, path: str) -> "DetectorConfig":
        """Copy of this config with labels from `path` appended (order kept, no duplicates)."""
        labels = list(dict.fromkeys(self.subdomain_labels + load_wordlist(path)))
        return dataclasses.replace(self, subdomain_labels=labels)


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

class ColorPrinter:
    """Levelled CLI output. Engine code logs through `logger` instead."""
    no_color = False

    LEVEL_COLORS = {
        "info": Fore.CYAN,
        "success": Fore.GREEN,
        "warning": Fore.YELLOW,
        "error": Fore.RED,
        "critical": Fore.RED + Style.BRIGHT,
    }

    @classmethod
    def print(cls, message: str, level: str = "info"):
        tag = f"[{level.upper()}]"
        if cls.no_color:
            print(f"{tag} {message}")
        else:
            print(f"{cls.LEVEL_COLORS.get(level, Fore.WHITE)}{tag}{Style.RESET_ALL} {message}")

    @staticmethod
    def print_banner():
        print(BANNER)

    @classmethod
    def print_table(cls, headers: List[str], rows: List[List[str]], title: Optional[str] = None):
        table = Table(title=title, show_header=True, header_style="bold magenta")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        Console(no_color=cls.no_color).print(table)


def validate_url(url: Any) -> str:
    """Reject anything that is not an absolute http(s) URL with a host."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidInputError("URL is required")

    url = url.strip()
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
        parsed.port  # raises ValueError for an out-of-range port
    except ValueError as e:
        raise InvalidInputError(f"Invalid URL '{url}': {e}") from e

    if parsed.scheme not in ("http", "https") or not hostname:
        raise InvalidInputError(
            f"Invalid URL '{url}'. Enter a complete URL (e.g. https://example.com)"
        )
    return url


def extract_base_domain(hostname: str) -> str:
    """Last two dot-separated labels of `hostname`.

    No public-suffix awareness: mail.example.co.uk gives co.uk.
    """
    hostname = hostname.lower().rstrip(".")
    parts = hostname.split(".")
    if len(parts) >= 2:
        return ".".join(parts[-2:])
    return hostname


def target_base_domain(url: str) -> Optional[str]:
    """Base domain to enumerate for `url`; None for IP literals and host-less URLs."""
    hostname = urlparse(url).hostname
    if not hostname:
        return None
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return extract_base_domain(hostname)
    return None


def resolve_location(url: str, location: str) -> str:
    """Resolve a Location header value against the origin of `url`."""
    parsed = urlparse(url)
    origin = f"{parsed.scheme}://{parsed.netloc}/"
    return urljoin(origin, location.strip())


def load_wordlist(path: str) -> List[str]:
    """Read subdomain labels, one per line; blank lines and # comments are skipped."""
    with open(path, "r", encoding="utf-8") as f:
        words = []
        for line in f:
            word = line.strip().lower()
            if word and not word.startswith("#"):
                words.append(word)
    return words


def classify_os_error(exc: BaseException) -> ErrorKind:
    """Tell DNS and TLS failures apart from other connection errors."""
    seen = set()
    current = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ssl.SSLError):
            return ErrorKind.TLS
        if isinstance(current, socket.gaierror):
            return ErrorKind.DNS
        current = current.__cause__ or current.__context__

    text = str(exc).lower()
    if any(marker in text for marker in TLS_ERROR_MARKERS):
        return ErrorKind.TLS
    if any(marker in text for marker in DNS_ERROR_MARKERS):
        return ErrorKind.DNS
    return ErrorKind.CONNECTION


def classify_httpx_error(exc: Exception) -> ErrorKind:
    if isinstance(exc, httpx.TimeoutException):
        return ErrorKind.TIMEOUT
    if isinstance(exc, httpx.TooManyRedirects):
        return ErrorKind.REDIRECT_POLICY
    if isinstance(exc, (httpx.UnsupportedProtocol, httpx.InvalidURL)):
        return ErrorKind.INVALID_URL
    return classify_os_error(exc)


def classify_aiohttp_error(exc: Exception) -> ErrorKind:
    # ServerTimeoutError is also a ClientError, so timeouts are checked first
    if isinstance(exc, asyncio.TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, aiohttp.TooManyRedirects):
        return ErrorKind.REDIRECT_POLICY
    if isinstance(exc, aiohttp.InvalidURL):
        return ErrorKind.INVALID_URL
    if isinstance(exc, (aiohttp.ClientSSLError, aiohttp.ServerFingerprintMismatch)):
        return ErrorKind.TLS
    if isinstance(exc, aiohttp.ClientConnectorError):
        return classify_os_error(exc.os_error)
    return classify_os_error(exc)


# ============================================================================
# TRANSPORTS
# ============================================================================

class ProbeTransport(ABC):
    """
    Sends one HTTP request and returns the raw response.

    Implementations must be safe for concurrent use by every probe of an
    analysis and raise TransportError for any failure they can classify.
    """

    @abstractmethod
    async def send(self, method: str, url: str, headers: Mapping[str, str],
                   timeout: float, follow_redirects: bool) -> RawResponse:
        ...

    async def aclose(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


class HttpxTransport(ProbeTransport):
    """Pooled httpx.AsyncClient transport"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, verify_ssl: bool = False):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            verify=verify_ssl,
            timeout=httpx.Timeout(DEFAULT_PROBE_TIMEOUT),
        )

    async def send(self, method, url, headers, timeout, follow_redirects):
        try:
            resp = await self.client.request(
                method,
                url,
                headers=dict(headers),
                timeout=httpx.Timeout(timeout),
                follow_redirects=follow_redirects,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(classify_httpx_error(e), f"{type(e).__name__}: {e}") from e

        return RawResponse(
            url=str(resp.url),
            status_code=resp.status_code,
            headers={k.lower(): v for k, v in resp.headers.items()},
            body=resp.content,
        )

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()


class AiohttpTransport(ProbeTransport):
    """Pooled aiohttp.ClientSession transport. The session is opened on first use."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, verify_ssl: bool = False):
        self._session = session
        self._owns_session = session is None
        self.verify_ssl = verify_ssl

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            connector = aiohttp.TCPConnector(ssl=self.verify_ssl)
            self._session = aiohttp.ClientSession(connector=connector)
        return self._session

    async def send(self, method, url, headers, timeout, follow_redirects):
        session = self._get_session()
        try:
            async with session.request(
                method,
                url,
                headers=dict(headers),
                allow_redirects=follow_redirects,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                body = await resp.read()
                return RawResponse(
                    url=str(resp.url),
                    status_code=resp.status,
                    headers={k.lower(): v for k, v in resp.headers.items()},
                    body=body,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(classify_aiohttp_error(e), f"{type(e).__name__}: {e}") from e

    async def aclose(self):
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None


TRANSPORTS = {
    "httpx": HttpxTransport,
    "aiohttp": AiohttpTransport,
}


def make_transport(name: str = "httpx", verify_ssl: bool = False) -> ProbeTransport:
    try:
        transport_cls = TRANSPORTS[name]
    except KeyError:
        raise ValueError(f"Unknown transport '{name}' (choose from {', '.join(TRANSPORTS)})") from None
    return transport_cls(verify_ssl=verify_ssl)


# ============================================================================
# DETECTION ENGINE
# ============================================================================

class ProbeExecutor:
    """
    Issues exactly one request per call and turns the outcome into a
    ResponseSignature. Transport failures never escape: they come back as
    `succeeded=False` with an ErrorKind. Holds no per-request state, so one
    executor serves any number of concurrent probes.
    """

    def __init__(self, transport: ProbeTransport):
        self.transport = transport

    async def execute(self, url: str, profile: RequestProfile, timeout: float, *,
                      follow_redirects: bool, method: str = "GET") -> ResponseSignature:
        signature, _ = await self.execute_raw(
            url, profile, timeout, follow_redirects=follow_redirects, method=method
        )
        return signature

    async def execute_raw(self, url: str, profile: RequestProfile, timeout: float, *,
                          follow_redirects: bool,
                          method: str = "GET") -> Tuple[ResponseSignature, Optional[RawResponse]]:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self.transport.send(method, url, profile.headers, timeout, follow_redirects),
                timeout=timeout,
            )
        except TransportError as e:
            logger.debug(f"Probe {profile.dimension.value}/{profile.label} -> {url} failed: {e.kind.value} ({e})")
            return ResponseSignature.failure(profile, e.kind, str(e)), None
        except asyncio.TimeoutError:
            logger.debug(f"Probe {profile.dimension.value}/{profile.label} -> {url} timed out after {timeout}s")
            return ResponseSignature.failure(profile, ErrorKind.TIMEOUT, f"no response within {timeout}s"), None
        except Exception as e:
            logger.debug(f"Probe {profile.dimension.value}/{profile.label} -> {url} raised {type(e).__name__}: {e}")
            return ResponseSignature.failure(profile, ErrorKind.UNKNOWN, f"{type(e).__name__}: {e}"), None

        elapsed = time.monotonic() - start
        return ResponseSignature.from_response(profile, response, elapsed), response


class DivergenceAnalyzer:
    """Decides whether one dimension's probes were served different content."""

    @staticmethod
    def analyze(dimension: Dimension, signatures: Iterable[ResponseSignature]) -> DimensionResult:
        """
        Compare content lengths across the successful probes.

        Two or more successful responses with more than one distinct length
        count as divergence. Fewer than two successes is insufficient
        evidence and never counts, whatever the lengths.
        """
        signatures = tuple(signatures)
        succeeded = [s for s in signatures if s.succeeded]
        lengths = frozenset(s.content_length for s in succeeded if s.content_length is not None)

        return DimensionResult(
            dimension=dimension,
            tested_count=len(signatures),
            responded_count=len(succeeded),
            distinct_content_lengths=lengths,
            different_content=len(succeeded) >= 2 and len(lengths) > 1,
            signatures=signatures,
        )


class RedirectTracker:
    """Single no-follow request; reports where a 3xx would have sent us."""

    def __init__(self, executor: ProbeExecutor, timeout: float = DEFAULT_PROBE_TIMEOUT):
        self.executor = executor
        self.timeout = timeout
        self.profile = RequestProfile(Dimension.BASELINE, "redirect-check")

    async def check(self, url: str) -> RedirectInfo:
        signature, response = await self.executor.execute_raw(
            url, self.profile, self.timeout, follow_redirects=False
        )
        if response is None:
            # No response is no evidence of a redirect
            return RedirectInfo(requested_url=url)

        location = response.header("location")
        if 300 <= response.status_code < 400 and location:
            try:
                final_url = resolve_location(url, location)
            except ValueError:
                final_url = location.strip()
            logger.info(f"{url} redirects ({response.status_code}) to {final_url}")
            return RedirectInfo(
                requested_url=url,
                has_redirect=True,
                final_url=final_url,
                status=response.status_code,
            )

        return RedirectInfo(requested_url=url, status=signature.status_code)


class SubdomainEnumerator:
    """Brute-force HTTPS liveness checks over a fixed label list"""

    def __init__(self, executor: ProbeExecutor, timeout: float = DEFAULT_SUBDOMAIN_TIMEOUT):
        self.executor = executor
        self.timeout = timeout

    async def enumerate(self, base_domain: str, labels: Iterable[str]) -> List[SubdomainFinding]:
        """Probe every label; findings come back in label order, reachable or not."""
        tasks = [self.probe(base_domain, label) for label in labels]
        return list(await asyncio.gather(*tasks))

    async def probe(self, base_domain: str, label: str) -> SubdomainFinding:
        url = self.url_for(base_domain, label)
        profile = RequestProfile(Dimension.BASELINE, label)
        signature = await self.executor.execute(
            url, profile, self.timeout, follow_redirects=False, method="HEAD"
        )
        return SubdomainFinding(
            label=label,
            url=url,
            reachable=signature.succeeded,
            status=signature.status_code,
            error=signature.error,
        )

    @staticmethod
    def url_for(base_domain: str, label: str) -> str:
        return f"https://{label}.{base_domain}"

    @classmethod
    def abandoned(cls, base_domain: str, label: str) -> SubdomainFinding:
        """Finding for a label whose probe was cancelled at the analysis deadline."""
        return SubdomainFinding(
            label=label,
            url=cls.url_for(base_domain, label),
            reachable=False,
            error=ErrorKind.DEADLINE,
        )


class CloakDetector:
    """
    Runs every probe for one URL and assembles the DetectionReport.

    All probes (redirect check, each spoofing profile, each subdomain label)
    are independent tasks bounded by a semaphore. When the outer deadline
    expires, whatever is still running is cancelled and recorded as a failed
    probe; the report is returned either way.
    """

    def __init__(self, transport: Optional[ProbeTransport] = None,
                 config: Optional[DetectorConfig] = None):
        self.transport = transport
        self.config = config or DetectorConfig()

    async def detect(self, url: str) -> DetectionReport:
        if self.transport is not None:
            return await self._run(url, self.transport)
        async with make_transport(self.config.transport, self.config.verify_ssl) as transport:
            return await self._run(url, transport)

    async def _run(self, url: str, transport: ProbeTransport) -> DetectionReport:
        config = self.config
        started_at = datetime.now()
        start = time.monotonic()

        executor = ProbeExecutor(transport)
        tracker = RedirectTracker(executor, config.probe_timeout)
        enumerator = SubdomainEnumerator(executor, config.subdomain_timeout)
        semaphore = asyncio.Semaphore(config.max_concurrency)

        async def bounded(func, *args, **kwargs):
            async with semaphore:
                return await func(*args, **kwargs)

        redirect_task = asyncio.ensure_future(bounded(tracker.check, url))

        probe_tasks: Dict[Dimension, List[Tuple[RequestProfile, asyncio.Future]]] = {}
        for dimension in SPOOFING_DIMENSIONS:
            probe_tasks[dimension] = [
                (profile, asyncio.ensure_future(bounded(
                    executor.execute, url, profile, config.probe_timeout, follow_redirects=True
                )))
                for profile in config.profiles_for(dimension)
            ]

        base_domain = target_base_domain(url)
        labels = config.subdomain_labels if (config.enumerate_subdomains and base_domain) else []
        # Same work as enumerator.enumerate, but one task per label so the
        # deadline can cancel labels individually
        subdomain_tasks = [
            (label, asyncio.ensure_future(bounded(enumerator.probe, base_domain, label)))
            for label in labels
        ]

        all_tasks = [redirect_task]
        for pairs in probe_tasks.values():
            all_tasks.extend(task for _, task in pairs)
        all_tasks.extend(task for _, task in subdomain_tasks)

        logger.info(f"Analyzing {url}: {len(all_tasks)} probes (deadline {config.deadline}s)")
        try:
            _, pending = await asyncio.wait(all_tasks, timeout=config.deadline)
            if pending:
                logger.warning(
                    f"Deadline of {config.deadline}s reached for {url}; "
                    f"abandoning {len(pending)} in-flight probes"
                )
        finally:
            unfinished = [task for task in all_tasks if not task.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        redirect = _task_outcome(redirect_task, RedirectInfo(requested_url=url))

        dimension_results = {}
        for dimension, pairs in probe_tasks.items():
            signatures = [
                _task_outcome(task, ResponseSignature.failure(
                    profile, ErrorKind.DEADLINE, "analysis deadline reached"
                ))
                for profile, task in pairs
            ]
            dimension_results[dimension] = DivergenceAnalyzer.analyze(dimension, signatures)

        subdomains = [
            _task_outcome(task, SubdomainEnumerator.abandoned(base_domain, label))
            for label, task in subdomain_tasks
        ]

        report = DetectionReport.assemble(
            original_url=url,
            redirect=redirect,
            dimension_results=dimension_results,
            subdomains=subdomains,
            base_domain=base_domain,
            started_at=started_at,
            duration=time.monotonic() - start,
        )
        logger.info(
            f"{url}: cloaker_detected={report.cloaker_detected} "
            f"techniques={report.techniques} reachable_subdomains={len(report.reachable_subdomains)}"
        )
        return report


def _task_outcome(task: asyncio.Future, fallback):
    if task.cancelled():
        return fallback
    exc = task.exception()
    if exc is not None:
        logger.error(f"Probe task failed unexpectedly: {type(exc).__name__}: {exc}")
        return fallback
    return task.result()


async def detect(url: str, config: Optional[DetectorConfig] = None,
                 transport: Optional[ProbeTransport] = None) -> DetectionReport:
    """Analyze `url` with a fresh detector. `url` must already be validated."""
    return await CloakDetector(transport=transport, config=config).detect(url)


# ============================================================================
# REMOTE ANALYSIS
# ============================================================================

async def analyze_remote(api_url: str, url: str, timeout: float = DEFAULT_DEADLINE + 10,
                         client: Optional[httpx.AsyncClient] = None) -> DetectionReport:
    """Ask a running Cloak Sentinel server to analyze `url`."""
    endpoint = api_url.rstrip("/") + "/api/analyze"
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=timeout)
    try:
        resp = await client.post(endpoint, json={"url": url})
        resp.raise_for_status()
        return DetectionReport.from_dict(resp.json())
    finally:
        if owns_client:
            await client.aclose()


async def analyze_with_fallback(url: str, config: Optional[DetectorConfig] = None,
                                api_url: Optional[str] = None,
                                transport: Optional[ProbeTransport] = None,
                                client: Optional[httpx.AsyncClient] = None) -> DetectionReport:
    """Use the API server when one is given; analyze locally if it cannot answer."""
    config = config or DetectorConfig()
    if api_url:
        timeout = (config.deadline or DEFAULT_DEADLINE) + 10
        try:
            return await analyze_remote(api_url, url, timeout=timeout, client=client)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"API server at {api_url} unavailable ({type(e).__name__}: {e}); analyzing locally")
            ColorPrinter.print("Server not available, using local analysis", "warning")
    return await detect(url, config=config, transport=transport)


# ============================================================================
# REPORT GENERATION
# ============================================================================

class ReportGenerator:
    """Generate various report formats"""

    @staticmethod
    def generate_html_report(report: DetectionReport, output_file: str):
        """Generate a standalone HTML report"""
        esc = html.escape
        html_template = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Cloak Sentinel Report - {url}</title>
    <style>
        * {{ box-sizing: border-box; }}
        body {{ font-family: 'Segoe UI', Arial, sans-serif; margin: 0; padding: 20px; background: #0f1117; color: #e1e4e8; }}
        .container {{ max-width: 1200px; margin: 0 auto; }}
        .header {{ background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 30px; border-radius: 12px; margin-bottom: 30px; }}
        .header h1 {{ margin: 0 0 5px 0; font-size: 1.8em; }}
        .header p {{ margin: 0; opacity: 0.8; word-break: break-all; }}
        .stats {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 20px; margin-bottom: 30px; }}
        .stat-card {{ background: #161b22; padding: 20px; border-radius: 12px; text-align: center; border: 1px solid #30363d; }}
        .stat-value {{ font-size: 1.6em; font-weight: bold; color: #58a6ff; word-break: break-all; }}
        .stat-value.critical {{ color: #f85149; }}
        .stat-value.safe {{ color: #3fb950; }}
        .stat-label {{ color: #8b949e; margin-top: 5px; font-size: 0.9em; }}
        h2 {{ margin-top: 30px; }}
        table {{ width: 100%; background: #161b22; border-collapse: collapse; border-radius: 12px; overflow: hidden; border: 1px solid #30363d; margin-bottom: 20px; }}
        th, td {{ padding: 10px 14px; text-align: left; border-bottom: 1px solid #21262d; font-size: 14px; }}
        th {{ background: #0d1117; font-weight: 600; color: #8b949e; text-transform: uppercase; font-size: 12px; }}
        .yes {{ color: #f85149; font-weight: 600; }}
        .no {{ color: #3fb950; }}
        .muted {{ color: #8b949e; }}
        .footer {{ margin-top: 40px; color: #8b949e; font-size: 12px; text-align: center; }}
    </style>
</head>
<body>
<div class="container">
    <div class="header">
        <h1>Cloak Sentinel Report</h1>
        <p>{url}</p>
        <p>Scanned {timestamp} in {duration:.2f}s</p>
    </div>
    <div class="stats">
        <div class="stat-card"><div class="stat-value {verdict_class}">{verdict}</div><div class="stat-label">Cloaker</div></div>
        <div class="stat-card"><div class="stat-value">{technique_count}</div><div class="stat-label">Techniques</div></div>
        <div class="stat-card"><div class="stat-value">{reachable_count}/{subdomain_count}</div><div class="stat-label">Reachable subdomains</div></div>
        <div class="stat-card"><div class="stat-value">{real_url}</div><div class="stat-label">Real URL</div></div>
    </div>
    <h2>Techniques</h2>
    {techniques}
    <h2>Dimensions</h2>
    <table>
        <tr><th>Dimension</th><th>Tested</th><th>Responded</th><th>Distinct lengths</th><th>Different content</th></tr>
        {dimension_rows}
    </table>
    <h2>Probes</h2>
    <table>
        <tr><th>Dimension</th><th>Profile</th><th>Status</th><th>Length</th><th>Error</th></tr>
        {probe_rows}
    </table>
    <h2>Subdomains ({base_domain})</h2>
    <table>
        <tr><th>Subdomain</th><th>URL</th><th>Status</th></tr>
        {subdomain_rows}
    </table>
    <div class="footer">Generated by Cloak Sentinel v{version}. Content-length divergence is a heuristic, not proof of cloaking.</div>
</div>
</body>
</html>
"""
        if report.techniques:
            techniques = "<ul>" + "".join(f"<li>{esc(t)}</li>" for t in report.techniques) + "</ul>"
        else:
            techniques = '<p class="muted">No cloaking technique detected</p>'

        dimension_rows = []
        probe_rows = []
        for dimension, result in report.dimension_results.items():
            flag = '<span class="yes">YES</span>' if result.different_content else '<span class="no">no</span>'
            lengths = ", ".join(str(n) for n in sorted(result.distinct_content_lengths)) or "-"
            dimension_rows.append(
                f"<tr><td>{esc(dimension.value)}</td><td>{result.tested_count}</td>"
                f"<td>{result.responded_count}</td><td>{esc(lengths)}</td><td>{flag}</td></tr>"
            )
            for sig in result.signatures:
                probe_rows.append(
                    f"<tr><td>{esc(dimension.value)}</td><td>{esc(sig.profile.label)}</td>"
                    f"<td>{sig.status_code if sig.status_code is not None else '-'}</td>"
                    f"<td>{sig.content_length if sig.content_length is not None else '-'}</td>"
                    f"<td>{esc(sig.error.value) if sig.error else ''}</td></tr>"
                )

        subdomain_rows = [
            f"<tr><td>{esc(s.label)}</td><td>{esc(s.url)}</td><td>{s.status}</td></tr>"
            for s in report.reachable_subdomains
        ] or ['<tr><td colspan="3" class="muted">No responding subdomains</td></tr>']

        html_content = html_template.format(
            url=esc(report.original_url),
            timestamp=report.started_at.strftime('%Y-%m-%d %H:%M:%S'),
            duration=report.duration,
            verdict="DETECTED" if report.cloaker_detected else "NOT DETECTED",
            verdict_class="critical" if report.cloaker_detected else "safe",
            technique_count=len(report.techniques),
            reachable_count=len(report.reachable_subdomains),
            subdomain_count=len(report.subdomains),
            real_url=esc(report.real_url or "-"),
            techniques=techniques,
            dimension_rows="\n        ".join(dimension_rows),
            probe_rows="\n        ".join(probe_rows),
            base_domain=esc(report.base_domain or "-"),
            subdomain_rows="\n        ".join(subdomain_rows),
            version=VERSION,
        )

        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(html_content)

        ColorPrinter.print(f"HTML report generated: {output_file}", "success")

    @staticmethod
    def generate_json_report(report: DetectionReport, output_file: str):
        """Generate JSON report"""
        with open(output_file, 'w', encoding='utf-8') as f:
            json.dump(report.to_dict(), f, indent=2, default=str)

        ColorPrinter.print(f"JSON report generated: {output_file}", "success")

    @staticmethod
    def generate_csv_report(report: DetectionReport, output_file: str):
        """One row per probe, subdomain checks included"""
        with open(output_file, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(['Kind', 'Dimension', 'Label', 'URL', 'Succeeded', 'Status', 'Content Length', 'Error'])

            for dimension, result in report.dimension_results.items():
                for sig in result.signatures:
                    writer.writerow([
                        'probe',
                        dimension.value,
                        sig.profile.label,
                        report.original_url,
                        sig.succeeded,
                        sig.status_code if sig.status_code is not None else '',
                        sig.content_length if sig.content_length is not None else '',
                        sig.error.value if sig.error else '',
                    ])

            for finding in report.subdomains:
                writer.writerow([
                    'subdomain',
                    Dimension.BASELINE.value,
                    finding.label,
                    finding.url,
                    finding.reachable,
                    finding.status if finding.status is not None else '',
                    '',
                    finding.error.value if finding.error else '',
                ])

        ColorPrinter.print(f"CSV report generated: {output_file}", "success")

    @staticmethod
    def generate_markdown_report(report: DetectionReport, output_file: str):
        """Generate Markdown report"""
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write("# Cloak Sentinel Report\n\n")
            f.write(f"**URL:** {report.original_url}\n")
            f.write(f"**Scan Time:** {report.started_at.strftime('%Y-%m-%d %H:%M:%S')}\n")
            f.write(f"**Duration:** {report.duration:.2f} seconds\n")
            f.write(f"**Cloaker Detected:** {'YES' if report.cloaker_detected else 'no'}\n")
            if report.real_url:
                f.write(f"**Real URL:** {report.real_url}\n")
            f.write("\n## Techniques\n\n")
            if report.techniques:
                for technique in report.techniques:
                    f.write(f"- {technique}\n")
            else:
                f.write("_None detected_\n")

            f.write("\n## Dimensions\n\n")
            f.write("| Dimension | Tested | Responded | Distinct Lengths | Different |\n")
            f.write("|-----------|--------|-----------|------------------|-----------|\n")
            for dimension, result in report.dimension_results.items():
                lengths = ", ".join(str(n) for n in sorted(result.distinct_content_lengths)) or "-"
                f.write(f"| {dimension.value} | {result.tested_count} | {result.responded_count} | "
                        f"{lengths} | {'YES' if result.different_content else 'no'} |\n")

            f.write(f"\n## Responding Subdomains ({report.base_domain or '-'})\n\n")
            f.write("| Subdomain | URL | Status |\n")
            f.write("|-----------|-----|--------|\n")
            for finding in report.reachable_subdomains:
                f.write(f"| {finding.label} | {finding.url} | {finding.status} |\n")

        ColorPrinter.print(f"Markdown report generated: {output_file}", "success")


def print_summary(report: DetectionReport):
    """Print summary to console"""
    ColorPrinter.print("\n" + "=" * 60, "info")
    ColorPrinter.print("📊 ANALYSIS SUMMARY", "info")
    ColorPrinter.print("=" * 60, "info")

    print(f"URL: {report.original_url}")
    print(f"Duration: {report.duration:.2f} seconds")

    if report.cloaker_detected:
        ColorPrinter.print("🚨 CLOAKER DETECTED", "critical")
        for technique in report.techniques:
            print(f"  • {technique}")
        if report.real_url:
            print(f"  Real URL: {report.real_url}")
    else:
        ColorPrinter.print("✅ No cloaking detected", "success")

    rows = []
    for dimension, result in report.dimension_results.items():
        rows.append([
            dimension.value,
            str(result.tested_count),
            str(result.responded_count),
            ", ".join(str(n) for n in sorted(result.distinct_content_lengths)) or "-",
            "YES" if result.different_content else ("no signal" if result.partial else "no"),
        ])
    ColorPrinter.print_table(
        ["Dimension", "Tested", "Responded", "Lengths", "Different"], rows, title="Spoofing dimensions"
    )

    reachable = report.reachable_subdomains
    if reachable:
        ColorPrinter.print_table(
            ["Subdomain", "URL", "Status"],
            [[s.label, s.url, str(s.status)] for s in reachable],
            title=f"Responding subdomains of {report.base_domain}",
        )
    elif report.subdomains:
        ColorPrinter.print(f"No subdomain of {report.base_domain} responded", "info")


# ============================================================================
# HTTP API SERVER
# ============================================================================

CONFIG_KEY = web.AppKey("config", DetectorConfig)
TRANSPORT_KEY = web.AppKey("transport", ProbeTransport)


async def handle_analyze(request: web.Request) -> web.Response:
    try:
        payload = await request.json()
    except ValueError:
        return web.json_response({"error": "Request body must be JSON"}, status=400)
    if not isinstance(payload, dict):
        return web.json_response({"error": "Request body must be a JSON object"}, status=400)

    try:
        url = validate_url(payload.get("url"))
    except InvalidInputError as e:
        return web.json_response({"error": str(e)}, status=400)

    detector = CloakDetector(transport=request.app[TRANSPORT_KEY], config=request.app[CONFIG_KEY])
    try:
        report = await detector.detect(url)
    except Exception:
        logger.exception(f"Analysis failed for {url}")
        return web.json_response({"error": "Internal server error"}, status=500)
    return web.json_response(report.to_dict())


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "version": VERSION})


def create_app(config: Optional[DetectorConfig] = None,
               transport_factory: Optional[Callable[[], ProbeTransport]] = None) -> web.Application:
    """aiohttp application exposing POST /api/analyze and GET /health."""
    config = config or DetectorConfig()
    if transport_factory is None:
        def transport_factory():
            return make_transport(config.transport, config.verify_ssl)

    async def transport_ctx(app: web.Application):
        transport = transport_factory()
        app[TRANSPORT_KEY] = transport
        yield
        await transport.aclose()

    app = web.Application()
    app[CONFIG_KEY] = config
    app.cleanup_ctx.append(transport_ctx)
    app.router.add_post("/api/analyze", handle_analyze)
    app.router.add_get("/health", handle_health)
    return app


def run_server(config: DetectorConfig, host: str = "0.0.0.0", port: int = 3000):
    ColorPrinter.print(f"🚀 Cloak Sentinel API listening on http://{host}:{port}", "success")
    ColorPrinter.print("POST /api/analyze with {\"url\": \"https://example.com\"}", "info")
    web.run_app(create_app(config), host=host, port=port, print=None)


# ============================================================================
# COMMAND LINE INTERFACE
# ============================================================================

def parse_args(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description=f"Cloak Sentinel v{VERSION} - Cloaking Detection & Subdomain Probe Scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s https://example.com
  %(prog)s https://example.com --json --no-subdomains
  %(prog)s https://example.com --transport aiohttp --deadline 30
  %(prog)s https://example.com --wordlist-file labels.txt --html -o report
  %(prog)s https://example.com --api http://localhost:3000
  %(prog)s --serve --port 3000
        """
    )

    # Target options
    parser.add_argument("url", nargs="?", help="Target URL to analyze (e.g. https://example.com)")

    # Probe options
    parser.add_argument("--timeout", type=float, default=DEFAULT_PROBE_TIMEOUT,
                        help=f"Per-probe timeout in seconds (default: {DEFAULT_PROBE_TIMEOUT:g})")
    parser.add_argument("--subdomain-timeout", type=float, default=DEFAULT_SUBDOMAIN_TIMEOUT,
                        help=f"Subdomain probe timeout in seconds (default: {DEFAULT_SUBDOMAIN_TIMEOUT:g})")
    parser.add_argument("--deadline", type=float, default=DEFAULT_DEADLINE,
                        help=f"Overall analysis deadline in seconds, 0 disables (default: {DEFAULT_DEADLINE:g})")
    parser.add_argument("-t", "--threads", type=int, default=DEFAULT_CONCURRENCY,
                        help=f"Concurrent probes (default: {DEFAULT_CONCURRENCY})")
    parser.add_argument("--transport", choices=sorted(TRANSPORTS), default="httpx",
                        help="HTTP client used for probes (default: httpx)")
    parser.add_argument("--verify-ssl", action="store_true", help="Verify TLS certificates")
    parser.add_argument("--wordlist-file", help="Extra subdomain labels, one per line")
    parser.add_argument("--no-subdomains", action="store_true", help="Skip subdomain enumeration")
    parser.add_argument("--api", help="Cloak Sentinel server to analyze with (falls back to local analysis)")

    # Output options
    parser.add_argument("-o", "--output", help="Base name for output files")
    parser.add_argument("--html", action="store_true", help="Generate HTML report")
    parser.add_argument("--json", action="store_true", help="Generate JSON report")
    parser.add_argument("--csv", action="store_true", help="Generate CSV report")
    parser.add_argument("--markdown", action="store_true", help="Generate Markdown report")
    parser.add_argument("--no-reports", action="store_true", help="Don't generate any report files")

    # Server options
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API server instead of a scan")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=3000, help="Server port (default: 3000)")

    # Other options
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--quiet", action="store_true", help="Suppress non-essential output")
    parser.add_argument("--no-color", action="store_true", help="Disable colored console output")
    parser.add_argument("--version", action="version", version=f"Cloak Sentinel v{VERSION}")

    return parser.parse_args(argv)


def build_config(args) -> DetectorConfig:
    """Turn parsed CLI arguments into a DetectorConfig."""
    config = DetectorConfig(
        probe_timeout=args.timeout,
        subdomain_timeout=args.subdomain_timeout,
        deadline=args.deadline if args.deadline and args.deadline > 0 else None,
        max_concurrency=args.threads,
        verify_ssl=args.verify_ssl,
        enumerate_subdomains=not args.no_subdomains,
        transport=args.transport,
    )

    if args.wordlist_file:
        try:
            config = config.with_wordlist(args.wordlist_file)
            ColorPrinter.print(f"Loaded wordlist: {len(config.subdomain_labels)} labels", "info")
        except OSError as e:
            ColorPrinter.print(f"Error loading wordlist file: {e}", "warning")
            ColorPrinter.print("Using built-in wordlist instead", "info")

    return config


def configure_logging(debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def generate_reports(report: DetectionReport, args):
    """Generate all requested reports"""
    if args.no_reports:
        return

    host = urlparse(report.original_url).hostname or "target"
    base_name = args.output or f"cloaksentinel_{host}_{int(time.time())}"

    if args.html:
        ReportGenerator.generate_html_report(report, f"{base_name}.html")
    if args.json:
        ReportGenerator.generate_json_report(report, f"{base_name}.json")
    if args.csv:
        ReportGenerator.generate_csv_report(report, f"{base_name}.csv")
    if args.markdown:
        ReportGenerator.generate_markdown_report(report, f"{base_name}.md")

    # HTML + JSON when no specific format was requested
    if not any([args.html, args.json, args.csv, args.markdown]):
        ReportGenerator.generate_html_report(report, f"{base_name}.html")
        ReportGenerator.generate_json_report(report, f"{base_name}.json")


async def main(args) -> int:
    """Run one scan; returns the process exit code."""
    try:
        url = validate_url(args.url)
    except InvalidInputError as e:
        ColorPrinter.print(str(e), "error")
        ColorPrinter.print("Usage: cloaksentinel <url> [options]  (--help for details)", "info")
        return 1

    try:
        config = build_config(args)
    except ValueError as e:
        ColorPrinter.print(f"Invalid option: {e}", "error")
        return 1

    ColorPrinter.print(f"Starting analysis of: {url}", "info")
    report = await analyze_with_fallback(url, config, api_url=args.api)

    if not args.quiet:
        print_summary(report)
    generate_reports(report, args)

    return 2 if report.cloaker_detected else 0


def cli(argv: Optional[List[str]] = None):
    args = parse_args(argv)
    configure_logging(args.debug)

    if args.no_color:
        ColorPrinter.no_color = True
    if not args.quiet:
        ColorPrinter.print_banner()

    if args.serve:
        try:
            config = build_config(args)
        except ValueError as e:
            ColorPrinter.print(f"Invalid option: {e}", "error")
            sys.exit(1)
        run_server(config, host=args.host, port=args.port)
        return

    try:
        exit_code = asyncio.run(main(args))
    except KeyboardInterrupt:
        ColorPrinter.print("Scan interrupted by user", "warning")
        sys.exit(130)

    if exit_code == 2:
        ColorPrinter.print("⚠️  WARNING: cloaking detected!", "critical")
    elif exit_code == 0:
        ColorPrinter.print("✅ Scan completed successfully", "success")
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
