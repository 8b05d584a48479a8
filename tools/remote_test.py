#!/usr/bin/env python3
"""
remote_test.py - Remote smoke test for the Badminton Analyzer API
=================================================================

Standalone script that uploads a video to a running server, waits for the
analysis and prints a score summary. Only needs `requests`.

USAGE:
    python remote_test.py --url http://localhost:3000 --video rally.mp4

    # Custom owner ids and output file
    python remote_test.py -u https://my-host.example -v rally.mov \
        --user-id u1 --shop-id s1 --output analysis.json

NOTES:
    - Only MP4 and MOV uploads are accepted by the server
    - The simulated engine resolves after a few seconds; a remote engine may
      take much longer, raise --max-wait accordingly
"""

import argparse
import json
import mimetypes
import sys
import time
from pathlib import Path

import requests


# ============================================================
# Configuration
# ============================================================
VERSION = "1.0.0"
DEFAULT_TIMEOUT = 120  # seconds for the upload request
POLL_INTERVAL = 2      # seconds between status checks
TERMINAL_STATES = ("completed", "failed")


def print_banner():
    print("""
+---------------------------------------------------------------+
|          Badminton Analyzer remote test v{version}                |
+---------------------------------------------------------------+
""".format(version=VERSION))


def check_server(base_url: str) -> bool:
    """Check that the server answers the liveness probe."""
    try:
        r = requests.get(f"{base_url}/api/test", timeout=10)
        return r.status_code == 200 and r.json().get("success") is True
    except (requests.RequestException, ValueError) as e:
        print(f"   Connection error: {e}")
        return False


def guess_mime_type(video_path: Path) -> str:
    if video_path.suffix.lower() == ".mov":
        return "video/quicktime"
    return mimetypes.guess_type(video_path.name)[0] or "video/mp4"


def upload_video(
    base_url: str,
    video_path: str,
    user_id: str,
    shop_id: str,
    timeout: int = DEFAULT_TIMEOUT
) -> dict:
    """
    Upload a video for analysis.

    Returns:
        The upload response body, or None on failure
    """
    video_file = Path(video_path)
    if not video_file.exists():
        print(f"   ERROR: video not found: {video_path}")
        return None

    file_size_mb = video_file.stat().st_size / (1024 * 1024)
    print(f"   File: {video_file.name} ({file_size_mb:.1f} MB)")

    with open(video_file, 'rb') as f:
        files = {'video': (video_file.name, f, guess_mime_type(video_file))}
        data = {'userId': user_id, 'shopId': shop_id}
        try:
            r = requests.post(f"{base_url}/api/upload-video", files=files, data=data, timeout=timeout)
        except requests.Timeout:
            print(f"   ERROR: timed out after {timeout}s")
            return None
        except requests.RequestException as e:
            print(f"   ERROR: {e}")
            return None

    if r.status_code != 200:
        print(f"   ERROR: server answered {r.status_code}")
        print(f"   {r.text[:200]}")
        return None

    return r.json()


def wait_for_analysis(base_url: str, video_id: str, max_wait: int = 600) -> dict:
    """
    Poll until the analysis reaches a terminal state.

    Returns:
        The last `analysis` object, with status 'timeout' if max_wait elapsed
    """
    start_time = time.time()
    last_state = None
    analysis = {"status": "timeout"}

    while (time.time() - start_time) < max_wait:
        try:
            r = requests.get(f"{base_url}/api/analysis/{video_id}", timeout=10)
        except requests.RequestException as e:
            print(f"   Connection error: {e}")
            time.sleep(POLL_INTERVAL)
            continue

        if r.status_code != 200:
            print(f"   Status check: {r.status_code} {r.text[:100]}")
            time.sleep(POLL_INTERVAL)
            continue

        analysis = r.json().get("analysis", {})
        state = analysis.get("status", "unknown")
        if state != last_state:
            print(f"   {state} ({time.time() - start_time:.0f}s)")
            last_state = state

        if state in TERMINAL_STATES:
            return analysis

        time.sleep(POLL_INTERVAL)

    print(f"   Timed out after {max_wait}s")
    return {"status": "timeout"}


def format_results_summary(results: dict) -> str:
    """Render the score summary of a results payload."""
    lines = ["=" * 60, "RESULTS SUMMARY", "=" * 60]
    for section in ("technique", "footwork", "strategy"):
        report = results.get(section) or {}
        lines.append(f"\n{section.capitalize()}: {report.get('overallScore', 'N/A')}/100")
        for name, value in (report.get("detailedMetrics") or {}).items():
            lines.append(f"   - {name}: {value}")
        for tip in report.get("feedback", []):
            lines.append(f"   * {tip}")
    lines.append("=" * 60)
    return "\n".join(lines)


def main():
    parser = argparse.ArgumentParser(
        description='Remote smoke test for the Badminton Analyzer API',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -u http://localhost:3000 -v rally.mp4
  %(prog)s -u http://localhost:3000 -v rally.mov --user-id u1 --shop-id s1 -o out.json
        """
    )
    parser.add_argument('-u', '--url', required=True, help='Server base URL')
    parser.add_argument('-v', '--video', required=True, help='Path to the video file')
    parser.add_argument('--user-id', default='remote-test', help='userId form field')
    parser.add_argument('--shop-id', default='remote-test', help='shopId form field')
    parser.add_argument('-o', '--output', help='File to write the results JSON to')
    parser.add_argument(
        '--timeout',
        type=int,
        default=DEFAULT_TIMEOUT,
        help=f'Upload timeout in seconds (default: {DEFAULT_TIMEOUT})'
    )
    parser.add_argument(
        '--max-wait',
        type=int,
        default=600,
        help='Maximum time to wait for the analysis (default: 600s)'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {VERSION}')

    args = parser.parse_args()
    base_url = args.url.rstrip("/")

    print_banner()
    print(f"Server: {base_url}")
    print(f"Video:  {args.video}\n")

    print("1. Checking server...")
    if not check_server(base_url):
        print("   Cannot reach the server")
        return 1
    print("   Server is up")

    print("\n2. Uploading video...")
    upload_result = upload_video(base_url, args.video, args.user_id, args.shop_id, timeout=args.timeout)
    if not upload_result:
        return 1
    video_id = upload_result.get('videoId')
    print(f"   Uploaded, videoId: {video_id}")

    print("\n3. Waiting for analysis...")
    analysis = wait_for_analysis(base_url, video_id, args.max_wait)
    if analysis.get("status") != "completed":
        print(f"\n   Analysis ended with status: {analysis.get('status')}")
        return 1

    results = analysis.get("results", {})
    output_file = args.output or f"results_{video_id}.json"
    with open(output_file, 'w') as f:
        json.dump(results, f, indent=2)
    print(f"   Results saved: {output_file}")

    print(format_results_summary(results))
    return 0


if __name__ == "__main__":
    sys.exit(main())
