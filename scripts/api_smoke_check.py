"""
API smoke and performance check against a running greenleaf server.

This script:
1. Authenticates as a vendor user
2. Times the main GET endpoints and reports status and item counts
3. Optionally fires concurrent session-open requests at one register and checks
   that every response points at the same open session
4. Writes a JSON report

Usage:
    python scripts/api_smoke_check.py --base-url http://127.0.0.1:8000/api/v1 --register 3
Credentials come from GREENLEAF_USERNAME / GREENLEAF_PASSWORD or are prompted for.
"""

import argparse
import getpass
import json
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Dict, List, Optional

import requests

DEFAULT_BASE_URL = os.environ.get('GREENLEAF_BASE_URL', 'http://127.0.0.1:8000/api/v1')
REQUEST_TIMEOUT = 30

# (name, endpoint, params)
GET_ENDPOINTS = [
    ('Auth - Current User', '/auth/me/', None),
    ('Catalog - Products', '/products/', {'page': 1, 'page_size': 50}),
    ('Catalog - Product Search', '/products/', {'search': 'kush'}),
    ('Catalog - Categories', '/categories/', None),
    ('Inventory - Low Stock', '/inventory/', {'low_stock': 'true'}),
    ('Inventory - Ledger', '/inventory/transactions/', {'limit': 50}),
    ('Customers - List', '/customers/', {'page': 1}),
    ('Orders - List with Stats', '/orders/', {'date_range': 'last_7_days'}),
    ('POS - Registers', '/registers/', None),
    ('POS - Sessions', '/pos/sessions/', {'status': 'open'}),
    ('Analytics - Dashboard', '/analytics/dashboard/', None),
    ('Analytics - Sales Summary', '/analytics/sales-summary/', {'range': '30d'}),
    ('Analytics - Top Products', '/analytics/top-products/', {'limit': 10}),
    ('Storefront - Pages', '/storefront/pages/', None),
]


class APITester:
    """Runs timed requests against the API and collects the results"""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.results: List[Dict] = []
        self.session = requests.Session()
        self.access_token = None

    def authenticate(self, username: str, password: str) -> bool:
        print(f"🔐 Authenticating as {username}...")
        try:
            response = self.session.post(f"{self.base_url}/auth/login/",
                                         json={'username': username, 'password': password}, timeout=10)
        except requests.exceptions.RequestException as e:
            print(f"❌ Authentication error: {e}")
            return False
        if response.status_code != 200:
            print(f"❌ Authentication failed: {response.status_code} {response.text[:200]}")
            return False
        self.access_token = response.json().get('access')
        self.session.headers.update({'Authorization': f'Bearer {self.access_token}'})
        print("✅ Authentication successful!")
        return True

    def test_endpoint(self, name: str, endpoint: str, params: Optional[Dict] = None) -> Dict:
        """GET one endpoint and record its status, timing and item count"""
        url = f"{self.base_url}{endpoint}"
        result = {
            'name': name,
            'endpoint': endpoint,
            'params': params or {},
            'timestamp': datetime.now().isoformat(),
        }
        start_time = time.time()
        try:
            response = self.session.get(url, params=params, timeout=REQUEST_TIMEOUT)
        except requests.exceptions.Timeout:
            result.update(status_code=0, response_time_ms=REQUEST_TIMEOUT * 1000, success=False,
                          error=f'Request timeout ({REQUEST_TIMEOUT}s)')
            self.results.append(result)
            return result
        except requests.exceptions.RequestException as e:
            result.update(status_code=0, response_time_ms=0, success=False, error=str(e))
            self.results.append(result)
            return result

        result['status_code'] = response.status_code
        result['response_time_ms'] = round((time.time() - start_time) * 1000, 2)
        result['success'] = response.status_code == 200
        try:
            data = response.json()
        except ValueError:
            data = None
            result['response_text'] = response.text[:200]
        if isinstance(data, list):
            result['item_count'] = len(data)
        elif isinstance(data, dict) and 'results' in data:
            result['item_count'] = len(data['results'])
            result['total_count'] = data.get('count', 0)
        if not result['success']:
            result['error'] = (data or {}).get('error') if isinstance(data, dict) else response.text[:500]

        self.results.append(result)
        return result

    def check_session_race(self, register_id: int, workers: int = 8) -> Dict:
        """
        Open a session on one register from several threads at once.

        Exactly one request may create the session; every response must carry
        the same session id.
        """
        def open_session(_):
            response = self.session.post(f"{self.base_url}/pos/sessions/open/",
                                         json={'registerId': register_id, 'openingCash': '100.00'},
                                         timeout=REQUEST_TIMEOUT)
            body = response.json() if response.content else {}
            return response.status_code, (body.get('session') or {}).get('id')

        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(open_session, range(workers)))

        created = sum(1 for code, _ in outcomes if code == 201)
        session_ids = {session_id for _, session_id in outcomes if session_id}
        result = {
            'name': 'POS - Concurrent Session Open',
            'register_id': register_id,
            'status_codes': sorted(code for code, _ in outcomes),
            'session_ids': sorted(session_ids),
            'success': created <= 1 and len(session_ids) == 1,
        }
        self.results.append(result)
        return result

    def print_result(self, result: Dict):
        status_icon = "✅" if result['success'] else "❌"
        print(f"{status_icon} {result['name']}")
        if 'endpoint' in result:
            print(f"   {result['endpoint']} -> {result['status_code']} in {result['response_time_ms']}ms")
        if result.get('item_count') is not None:
            print(f"   Items: {result['item_count']}")
        if 'session_ids' in result:
            print(f"   Status codes: {result['status_codes']} Sessions: {result['session_ids']}")
        if not result['success'] and result.get('error'):
            print(f"   Error: {str(result['error'])[:200]}")

    def generate_report(self):
        timed = [r for r in self.results if r['success'] and 'response_time_ms' in r]
        failed = [r for r in self.results if not r['success']]

        print("\n" + "=" * 80)
        print("📊 API CHECK REPORT")
        print("=" * 80)
        print(f"Base URL: {self.base_url}")
        print(f"Checks: {len(self.results)}  Passed: {len(self.results) - len(failed)}  Failed: {len(failed)}")
        if timed:
            average = sum(r['response_time_ms'] for r in timed) / len(timed)
            slowest = max(timed, key=lambda r: r['response_time_ms'])
            print(f"Average Response Time: {average:.2f}ms")
            print(f"Slowest: {slowest['name']} ({slowest['response_time_ms']}ms)")
        for result in failed:
            print(f"❌ {result['name']}: {str(result.get('error', 'check failed'))[:200]}")
        print("=" * 80)

    def save_results(self, filename: str):
        with open(filename, 'w') as f:
            json.dump({
                'test_date': datetime.now().isoformat(),
                'base_url': self.base_url,
                'total_checks': len(self.results),
                'passed': sum(1 for r in self.results if r['success']),
                'results': self.results,
            }, f, indent=2)
        print(f"\n💾 Results saved to {filename}")


def main():
    parser = argparse.ArgumentParser(description='Smoke and performance check for the greenleaf API')
    parser.add_argument('--base-url', default=DEFAULT_BASE_URL)
    parser.add_argument('--register', type=int, help='Register id for the concurrent session-open check')
    parser.add_argument('--workers', type=int, default=8)
    parser.add_argument('--output', default='api_check_results.json')
    args = parser.parse_args()

    username = os.environ.get('GREENLEAF_USERNAME') or input("Enter username: ")
    password = os.environ.get('GREENLEAF_PASSWORD') or getpass.getpass("Enter password: ")

    tester = APITester(args.base_url)
    if not tester.authenticate(username, password):
        sys.exit(1)

    print("\n🚀 Checking endpoints...\n")
    for name, endpoint, params in GET_ENDPOINTS:
        tester.print_result(tester.test_endpoint(name, endpoint, params))

    if args.register:
        print("\n🔁 Checking concurrent session open...\n")
        tester.print_result(tester.check_session_race(args.register, args.workers))

    tester.generate_report()
    tester.save_results(args.output)
    sys.exit(0 if all(r['success'] for r in tester.results) else 1)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\n\n⚠️ Check interrupted by user")
        sys.exit(130)
