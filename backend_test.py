import os
import requests
import sys
import time


class DrScaleAPITester:
    def __init__(self, base_url=os.environ.get("DRSCALE_API_URL", "http://localhost:8001/api")):
        self.base_url = base_url
        self.token = None
        self.member_token = None
        self.user_id = None
        self.member_id = None
        self.company_id = None
        self.team_id = None
        self.invite_token = None
        self.owner_credentials = {}
        self.tests_run = 0
        self.tests_passed = 0
        self.failed_tests = []

    def log_result(self, test_name, success, details=""):
        """Log test result"""
        self.tests_run += 1
        if success:
            self.tests_passed += 1
            print(f"✅ {test_name}")
        else:
            print(f"❌ {test_name} - {details}")
            self.failed_tests.append({"test": test_name, "error": details})

    def make_request(self, method, endpoint, data=None, params=None, as_member=False):
        """Make HTTP request with proper headers"""
        url = f"{self.base_url}/{endpoint}"
        headers = {'Content-Type': 'application/json'}

        token = self.member_token if as_member else self.token
        if token:
            headers['Authorization'] = f'Bearer {token}'

        try:
            if method == 'GET':
                return requests.get(url, headers=headers, params=params, timeout=30)
            if method == 'POST':
                return requests.post(url, json=data, headers=headers, params=params, timeout=30)
        except requests.RequestException as e:
            print(f"   request error: {e}")
        return None

    @staticmethod
    def status_of(response):
        return response.status_code if response is not None else 'No response'

    def test_health(self):
        response = self.make_request('GET', 'health')
        success = response is not None and response.status_code == 200
        self.log_result("Health check", success, f"Status: {self.status_of(response)}")
        return success

    def register(self, label):
        timestamp = int(time.time() * 1000)
        user_data = {
            "email": f"{label}{timestamp}@example.com",
            "password": "testpass123",
            "name": f"{label.title()} {timestamp}",
        }
        response = self.make_request('POST', 'auth/register', user_data)
        success = response is not None and response.status_code == 200
        self.log_result(f"Register {label}", success, f"Status: {self.status_of(response)}")
        return (response.json(), user_data) if success else (None, user_data)

    def test_owner_registration(self):
        data, user_data = self.register("owner")
        if data:
            self.token = data['access_token']
            self.user_id = data['user']['id']
            self.company_id = data['user']['company_id']
            self.owner_credentials = user_data
        return data is not None

    def test_member_registration(self):
        data, _ = self.register("member")
        if data:
            self.member_token = data['access_token']
            self.member_id = data['user']['id']
        return data is not None

    def test_login(self):
        creds = {"email": self.owner_credentials["email"], "password": self.owner_credentials["password"]}
        response = self.make_request('POST', 'auth/login', creds)
        success = response is not None and response.status_code == 200 and response.json().get('access_token')
        self.log_result("Owner login", bool(success), f"Status: {self.status_of(response)}")

    def test_me(self):
        response = self.make_request('GET', 'auth/me')
        success = response is not None and response.status_code == 200
        if success:
            perms = response.json().get('permissions', [])
            success = 'manage_balances' in perms and 'send_invitations' in perms
        self.log_result("Owner permissions", success, f"Status: {self.status_of(response)}")

    def test_new_account_is_blocked(self):
        response = self.make_request('GET', 'billing/status')
        success = response is not None and response.status_code == 200 and response.json().get('is_blocked') is True
        self.log_result("New account starts blocked", success, f"Status: {self.status_of(response)}")

    def test_topup(self):
        data = {"user_id": self.user_id, "company_id": self.company_id, "amount": 5, "description": "smoke test"}
        response = self.make_request('POST', 'billing/admin/topup', data)
        success = response is not None and response.status_code == 200 and response.json().get('balance') == 5
        self.log_result("Admin top-up", success, f"Status: {self.status_of(response)}")

    def test_estimate(self):
        response = self.make_request('POST', 'billing/estimate', {"duration_sec": 120, "rate_per_minute": 0.02})
        success = response is not None and response.status_code == 200 and response.json().get('cost') == 0.04
        self.log_result("Estimate 2 min at $0.02/min", success, f"Status: {self.status_of(response)}")

    def test_authorize(self):
        ok = self.make_request('POST', 'billing/authorize', {"expected_duration_sec": 120})
        too_long = self.make_request('POST', 'billing/authorize', {"expected_duration_sec": 36000})
        success = (
            ok is not None and ok.json().get('allowed') is True
            and too_long is not None and too_long.json().get('reason') == 'insufficient_balance'
        )
        self.log_result("Authorize call", success, f"Status: {self.status_of(ok)} / {self.status_of(too_long)}")

    def test_complete_call_idempotent(self):
        call_id = f"smoke-{int(time.time() * 1000)}"
        body = {"duration_sec": 120, "rate_per_minute": 0.02}
        first = self.make_request('POST', f'billing/calls/{call_id}/complete', body)
        second = self.make_request('POST', f'billing/calls/{call_id}/complete', body)
        success = (
            first is not None and first.status_code == 200
            and second is not None and second.json().get('duplicate') is True
            and first.json().get('new_balance') == second.json().get('new_balance')
        )
        self.log_result("Call charged once", success, f"Status: {self.status_of(first)} / {self.status_of(second)}")

    def test_transactions(self):
        response = self.make_request('GET', 'billing/transactions')
        success = response is not None and response.status_code == 200 and response.json().get('count') == 2
        self.log_result("Ledger lists top-up and charge", success, f"Status: {self.status_of(response)}")

    def test_create_invite(self):
        teams = self.make_request('GET', 'team')
        if teams is None or teams.status_code != 200 or not teams.json():
            self.log_result("Create invite", False, "No team found")
            return
        self.team_id = teams.json()[0]['id']
        data = {"teamId": self.team_id, "email": "invitee@example.com", "role": "member"}
        response = self.make_request('POST', 'team/invite', data)
        success = response is not None and response.status_code == 200
        if success:
            self.invite_token = response.json()['link'].split('token=')[-1]
        self.log_result("Create invite", success, f"Status: {self.status_of(response)}")

    def test_check_invite(self):
        response = self.make_request('GET', 'team/check', params={"token": self.invite_token})
        success = response is not None and response.status_code == 200 and response.json().get('valid') is True
        self.log_result("Check invite", success, f"Status: {self.status_of(response)}")

        response = self.make_request('GET', 'team/check', params={"token": "not-a-real-token"})
        success = response is not None and response.json().get('error') == 'invalid_or_expired'
        self.log_result("Check unknown invite", success, f"Status: {self.status_of(response)}")

    def test_accept_invite(self):
        data = {"token": self.invite_token, "userId": self.member_id}
        response = self.make_request('POST', 'team/accept', data, as_member=True)
        success = response is not None and response.status_code == 200 and response.json().get('ok') is True
        self.log_result("Accept invite", success, f"Status: {self.status_of(response)}")

        again = self.make_request('POST', 'team/accept', data, as_member=True)
        success = again is not None and again.status_code == 400
        self.log_result("Invite is single-use", success, f"Status: {self.status_of(again)}")

    def test_seats(self):
        response = self.make_request('GET', f'team/{self.team_id}/seats')
        success = response is not None and response.status_code == 200 and response.json().get('seats_used') == 2
        self.log_result("Seat usage", success, f"Status: {self.status_of(response)}")

    def test_logout(self):
        response = self.make_request('POST', 'auth/logout')
        after = self.make_request('GET', 'auth/me')
        success = response is not None and response.status_code == 200 and after is not None and after.status_code == 401
        self.log_result("Logout ends session", success, f"Status: {self.status_of(after)}")

    def run_all_tests(self):
        """Run all API tests"""
        print("🚀 Starting Dr. Scale API Tests")
        print("=" * 50)

        if not self.test_health():
            return False

        # Authentication tests
        if not self.test_owner_registration() or not self.test_member_registration():
            return False
        self.test_login()
        self.test_me()

        # Billing tests
        self.test_new_account_is_blocked()
        self.test_topup()
        self.test_estimate()
        self.test_authorize()
        self.test_complete_call_idempotent()
        self.test_transactions()

        # Team tests
        self.test_create_invite()
        if self.invite_token:
            self.test_check_invite()
            self.test_accept_invite()
            self.test_seats()

        self.test_logout()

        # Print results
        print("\n" + "=" * 50)
        print(f"📊 Test Results: {self.tests_passed}/{self.tests_run} passed")

        if self.failed_tests:
            print("\n❌ Failed Tests:")
            for test in self.failed_tests:
                print(f"  - {test['test']}: {test['error']}")

        return self.tests_passed == self.tests_run


def main():
    tester = DrScaleAPITester()
    success = tester.run_all_tests()
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
