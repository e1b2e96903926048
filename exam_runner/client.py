import logging

import requests

logger = logging.getLogger(__name__)


class AttemptAPIError(Exception):
    """A failed API call. ``status`` is None when the server was never reached."""

    def __init__(self, status, message):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self):
        return f"{self.status or 'network'}: {self.message}"


class AttemptAPIClient:
    def __init__(self, base_url, token=None, session=None, timeout=20):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers['Authorization'] = f"Bearer {token}"

    @classmethod
    def login(cls, base_url, email, password, session=None, timeout=20):
        client = cls(base_url, session=session, timeout=timeout)
        data = client._request('POST', 'auth/login/', {"email": email, "password": password})
        client.session.headers['Authorization'] = f"Bearer {data['access']}"
        return client

    def _request(self, method, path, payload=None):
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise AttemptAPIError(None, f"{method} {path} timed out")
        except requests.exceptions.ConnectionError:
            raise AttemptAPIError(None, f"Could not reach the server for {method} {path}")

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {"error": response.text[:200]}

        if not response.ok:
            message = data.get('error') if isinstance(data, dict) else None
            logger.debug("%s %s -> %s %s", method, path, response.status_code, message)
            raise AttemptAPIError(response.status_code, message or response.reason)
        return data

    # --- Attempt endpoints ---

    def start_attempt(self, booking_id):
        return self._request('POST', 'attempts/', {"bookingId": booking_id})

    def bootstrap(self, attempt_id):
        return self._request('GET', f'attempts/{attempt_id}/')

    def save(self, attempt_id, section_id, answers):
        return self._request('POST', f'attempts/{attempt_id}/save/', {"sectionId": section_id, "answers": answers})

    def start_section(self, attempt_id, section_id):
        return self._request('POST', f'attempts/{attempt_id}/section/start/', {"sectionId": section_id})

    def end_section(self, attempt_id, section_id, answers=None):
        payload = {"sectionId": section_id}
        if answers is not None:
            payload["answers"] = answers
        return self._request('POST', f'attempts/{attempt_id}/section/end/', payload)

    def submit(self, attempt_id):
        return self._request('POST', f'attempts/{attempt_id}/submit/')

    def results(self, attempt_id):
        return self._request('GET', f'attempts/{attempt_id}/results/')
