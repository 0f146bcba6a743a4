"""
Report files, remote analysis with local fallback, and the CLI entry points.
"""

import csv
import json
from datetime import datetime

import httpx
import pytest

import cloaksentinel
from cloaksentinel import (
    DetectionReport,
    DetectorConfig,
    Dimension,
    DivergenceAnalyzer,
    ErrorKind,
    RedirectInfo,
    ColorPrinter,
    ReportGenerator,
    RequestProfile,
    ResponseSignature,
    SubdomainFinding,
    analyze_with_fallback,
    build_config,
    cli,
    generate_reports,
    main,
    parse_args,
)

URL = "https://cloak.test/"


def sample_report(url=URL):
    def ok(dimension, label, length):
        return ResponseSignature(
            profile=RequestProfile(dimension, label), succeeded=True, status_code=200, content_length=length
        )

    results = {
        Dimension.USER_AGENT: DivergenceAnalyzer.analyze(Dimension.USER_AGENT, [
            ok(Dimension.USER_AGENT, "desktop", 100),
            ok(Dimension.USER_AGENT, "<script>alert(1)</script>", 500),
        ]),
        Dimension.REFERRER: DivergenceAnalyzer.analyze(Dimension.REFERRER, [
            ok(Dimension.REFERRER, "https://www.google.com", 100),
            ResponseSignature.failure(RequestProfile(Dimension.REFERRER, "https://www.facebook.com"),
                                      ErrorKind.TIMEOUT),
        ]),
        Dimension.GEOLOCATION: DivergenceAnalyzer.analyze(Dimension.GEOLOCATION, []),
    }
    subdomains = [
        SubdomainFinding("www", "https://www.cloak.test", True, 200),
        SubdomainFinding("mail", "https://mail.cloak.test", False, error=ErrorKind.DNS),
    ]
    redirect = RedirectInfo(url, has_redirect=True, final_url="https://real.example.com", status=302)
    return DetectionReport.assemble(
        url, redirect, results, subdomains, base_domain="cloak.test",
        started_at=datetime(2024, 5, 1, 12, 0, 0), duration=1.5,
    )


# ----------------------------------------------------------------------------
# ReportGenerator
# ----------------------------------------------------------------------------

def test_json_report_matches_report_dict(tmp_path):
    report = sample_report()
    path = tmp_path / "report.json"

    ReportGenerator.generate_json_report(report, str(path))

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == report.to_dict()
    assert data["techniques"] == ["Redirect", "User-Agent Spoofing"]


def test_html_report_escapes_probe_labels(tmp_path):
    path = tmp_path / "report.html"

    ReportGenerator.generate_html_report(sample_report(), str(path))

    content = path.read_text(encoding="utf-8")
    assert "<script>alert(1)</script>" not in content
    assert "&lt;script&gt;" in content
    assert "DETECTED" in content
    assert "https://real.example.com" in content
    assert "https://www.cloak.test" in content
    assert "https://mail.cloak.test" not in content


def test_csv_report_has_one_row_per_probe_and_subdomain(tmp_path):
    path = tmp_path / "report.csv"

    ReportGenerator.generate_csv_report(sample_report(), str(path))

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[0][0] == "Kind"
    # 2 user-agent + 2 referrer probes, 2 subdomains
    assert len(rows) == 1 + 4 + 2
    assert [r[0] for r in rows[1:]].count("subdomain") == 2
    assert rows[-1][-1] == "dns"


def test_markdown_report_lists_techniques(tmp_path):
    path = tmp_path / "report.md"

    ReportGenerator.generate_markdown_report(sample_report(), str(path))

    content = path.read_text(encoding="utf-8")
    assert content.startswith("# Cloak Sentinel Report")
    assert "- Redirect\n" in content
    assert "- User-Agent Spoofing\n" in content
    assert "**Real URL:** https://real.example.com" in content


def test_generate_reports_defaults_to_html_and_json(tmp_path):
    args = parse_args([URL, "-o", str(tmp_path / "scan")])

    generate_reports(sample_report(), args)

    assert sorted(p.name for p in tmp_path.iterdir()) == ["scan.html", "scan.json"]


def test_generate_reports_honours_format_flags(tmp_path):
    args = parse_args([URL, "-o", str(tmp_path / "scan"), "--csv", "--markdown"])

    generate_reports(sample_report(), args)

    assert sorted(p.name for p in tmp_path.iterdir()) == ["scan.csv", "scan.md"]


def test_no_reports_flag_writes_nothing(tmp_path):
    args = parse_args([URL, "-o", str(tmp_path / "scan"), "--no-reports", "--json"])

    generate_reports(sample_report(), args)

    assert list(tmp_path.iterdir()) == []


# ----------------------------------------------------------------------------
# Remote analysis with local fallback
# ----------------------------------------------------------------------------

def local_handler(request):
    return httpx.Response(200, content=b"local")


@pytest.mark.asyncio
async def test_remote_report_is_used_when_server_answers(mock_transport, fast_config):
    remote = sample_report()
    calls = []

    def api_handler(request):
        calls.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json=remote.to_dict())

    local_requests = []

    def handler(request):
        local_requests.append(request)
        return httpx.Response(200)

    client = httpx.AsyncClient(transport=httpx.MockTransport(api_handler))
    async with client:
        report = await analyze_with_fallback(
            URL, fast_config(), api_url="http://api.test:3000/",
            transport=mock_transport(handler), client=client,
        )

    assert calls == [("POST", "/api/analyze", {"url": URL})]
    assert local_requests == []
    assert report.techniques == remote.techniques
    assert report.real_url == "https://real.example.com"
    assert report.dimension_results[Dimension.USER_AGENT].different_content is True


@pytest.mark.asyncio
@pytest.mark.parametrize("api_handler", [
    lambda request: httpx.Response(500, json={"error": "Internal server error"}),
    lambda request: httpx.Response(200, content=b"<html>not the api</html>"),
    lambda request: httpx.Response(200, json={"unexpected": True}),
])
async def test_unusable_server_falls_back_to_local(mock_transport, fast_config, api_handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(api_handler))
    async with client:
        report = await analyze_with_fallback(
            URL, fast_config(), api_url="http://api.test:3000",
            transport=mock_transport(local_handler), client=client,
        )

    assert report.original_url == URL
    assert report.cloaker_detected is False
    assert report.dimension_results[Dimension.USER_AGENT].responded_count == 4


@pytest.mark.asyncio
async def test_unreachable_server_falls_back_to_local(mock_transport, fast_config):
    def api_handler(request):
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(api_handler))
    async with client:
        report = await analyze_with_fallback(
            URL, fast_config(), api_url="http://localhost:3000",
            transport=mock_transport(local_handler), client=client,
        )

    assert report.original_url == URL
    assert report.dimension_results[Dimension.REFERRER].responded_count == 5


@pytest.mark.asyncio
async def test_no_api_url_means_local_analysis(mock_transport, fast_config):
    report = await analyze_with_fallback(URL, fast_config(), transport=mock_transport(local_handler))

    assert report.cloaker_detected is False


# ----------------------------------------------------------------------------
# CLI
# ----------------------------------------------------------------------------

def test_parse_args_defaults():
    args = parse_args([URL])

    assert args.url == URL
    assert args.timeout == 5.0
    assert args.subdomain_timeout == 3.0
    assert args.deadline == 60.0
    assert args.threads == 20
    assert args.transport == "httpx"
    assert args.port == 3000
    assert args.serve is False


def test_build_config_from_args():
    args = parse_args([
        URL, "--timeout", "2", "--deadline", "0", "-t", "4",
        "--transport", "aiohttp", "--no-subdomains", "--verify-ssl",
    ])

    config = build_config(args)

    assert config.probe_timeout == 2.0
    assert config.deadline is None
    assert config.max_concurrency == 4
    assert config.transport == "aiohttp"
    assert config.enumerate_subdomains is False
    assert config.verify_ssl is True


def test_build_config_loads_wordlist(tmp_path):
    wordlist = tmp_path / "labels.txt"
    wordlist.write_text("vpn\nportal\n", encoding="utf-8")

    config = build_config(parse_args([URL, "--wordlist-file", str(wordlist)]))

    assert config.subdomain_labels[-2:] == ["vpn", "portal"]
    assert "www" in config.subdomain_labels


def test_build_config_keeps_defaults_when_wordlist_missing(tmp_path):
    config = build_config(parse_args([URL, "--wordlist-file", str(tmp_path / "nope.txt")]))

    assert config.subdomain_labels == DetectorConfig().subdomain_labels


@pytest.mark.asyncio
@pytest.mark.parametrize("argv", [["not-a-url"], [], ["https://cloak.test/", "-t", "0"]])
async def test_main_rejects_bad_input(argv, monkeypatch):
    async def unexpected(*args, **kwargs):
        raise AssertionError("analysis must not start")

    monkeypatch.setattr(cloaksentinel, "analyze_with_fallback", unexpected)

    assert await main(parse_args(argv + ["--no-reports"])) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("detected,expected", [(True, 2), (False, 0)])
async def test_main_exit_code_reflects_verdict(detected, expected, monkeypatch):
    report = sample_report()
    report.cloaker_detected = detected

    async def fake_analysis(url, config, api_url=None):
        assert url == URL
        return report

    monkeypatch.setattr(cloaksentinel, "analyze_with_fallback", fake_analysis)

    assert await main(parse_args([URL, "--no-reports", "--quiet"])) == expected


def test_cli_exits_with_main_result(monkeypatch):
    async def fake_main(args):
        return 2

    monkeypatch.setattr(cloaksentinel, "main", fake_main)

    with pytest.raises(SystemExit) as exc_info:
        cli([URL, "--quiet"])
    assert exc_info.value.code == 2


def test_cli_rejects_invalid_url():
    with pytest.raises(SystemExit) as exc_info:
        cli(["example.com", "--quiet", "--no-reports"])
    assert exc_info.value.code == 1


def test_cli_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli(["--version"])
    assert exc_info.value.code == 0
    assert cloaksentinel.VERSION in capsys.readouterr().out


def test_color_printer_plain_output(monkeypatch, capsys):
    monkeypatch.setattr(ColorPrinter, "no_color", True)

    ColorPrinter.print("Loaded wordlist", "warning")

    assert capsys.readouterr().out == "[WARNING] Loaded wordlist\n"
