"""HTTP session for talking to the Vivento API.

Each ``ApiSession`` owns its credential: the bearer header is built per
request from the session's token, so two sessions never share auth state.
"""
import httpx

from vivento.errors import AuthError, error_for


class ApiSession:
    def __init__(self, base_url=None, token=None, http=None, timeout=10.0):
        if http is None:
            http = httpx.Client(base_url=base_url or "", timeout=timeout)
        self.http = http
        self.token = token
        self.user = None

    def close(self):
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    @property
    def is_authenticated(self):
        return self.token is not None

    def _headers(self):
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def request(self, method, path, json=None, params=None):
        response = self.http.request(method, path, json=json, params=params, headers=self._headers())
        if response.is_success:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}
        err = error_for(body.get("code"), body.get("error") or response.text, response.status_code)

        if isinstance(err, AuthError):
            # Forced logout: the stored credential is no longer good
            self.logout()
        raise err

    def get(self, path, **kwargs):
        return self.request("GET", path, **kwargs)

    def post(self, path, json=None):
        return self.request("POST", path, json=json or {})

    def _adopt(self, data):
        self.token = data["token"]
        self.user = data["user"]
        return data

    # auth

    def check_user_exists(self, email):
        return self.post("/auth/check-user-exists", {"email": email})["exists"]

    def register(self, **fields):
        return self.post("/auth/register", fields)

    def verify_email(self, registration_id, otp):
        return self._adopt(self.post("/auth/verify-email", {"registrationId": registration_id, "otp": otp}))

    def resend_registration_otp(self, registration_id):
        return self.post("/auth/resend-otp", {"registrationId": registration_id})

    def login(self, email, password):
        return self._adopt(self.post("/auth/login", {"email": email, "password": password}))

    def me(self):
        self.user = self.get("/auth/me")["user"]
        return self.user

    def logout(self):
        self.token = None
        self.user = None

    # clubs

    def create_club(self, **fields):
        return self.post("/clubs/create", fields)

    def verify_faculty(self, club_id, otp):
        return self.post("/clubs/verify-faculty", {"clubId": club_id, "otp": otp})

    def resend_faculty_otp(self, club_id):
        return self.post("/clubs/resend-faculty-otp", {"clubId": club_id})

    def my_club(self):
        return self.get("/clubs/mine")

