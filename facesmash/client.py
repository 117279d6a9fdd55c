"""
client.py — Facesmash HTTP client and voting session
====================================================
``FacesmashClient`` is a thin httpx wrapper over the /students API.
``VotingSession`` holds the state a front end keeps while a user plays:
the current pair, the gender filter, whether a vote is in flight, and an
optional statistics panel. Nothing here is stored server-side.

Environment variables
---------------------
FACESMASH_URL – Base URL of the API including prefix (default: http://localhost:8000/api)
"""
from __future__ import annotations

import logging
import os
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

FACESMASH_URL = os.getenv("FACESMASH_URL", "http://localhost:8000/api")
_TIMEOUT = 10.0

log = logging.getLogger("facesmash.client")


class FacesmashAPIError(RuntimeError):
    """Raised for any non-2xx response; mirrors the server's error body."""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        details: Optional[List[str]] = None,
        retry_after: Optional[int] = None,
    ) -> None:
        super().__init__(f"{status_code} {error}: {message}")
        self.status_code = status_code
        self.error = error
        self.message = message
        self.details = details or []
        self.retry_after = retry_after


class FacesmashClient:
    def __init__(
        self,
        base_url: str = FACESMASH_URL,
        timeout: float = _TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._http = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "FacesmashClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        resp = self._http.request(method, path, **kwargs)
        if resp.is_success:
            return resp.json()
        try:
            body = resp.json()
        except ValueError:
            body = {}
        raise FacesmashAPIError(
            status_code=resp.status_code,
            error=body.get("error", resp.reason_phrase),
            message=body.get("message", resp.text),
            details=body.get("details"),
            retry_after=body.get("retryAfter"),
        )

    # -- rounds -----------------------------------------------------------

    def random_students(self, gender: Optional[str] = None, count: int = 2) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"count": count}
        if gender and gender != "all":
            params["gender"] = gender
        return self._request("GET", "/students/random", params=params)["students"]

    def vote(self, student_id: str) -> Dict[str, Any]:
        """Returns {id, rollNumber, upvotes} for the voted student."""
        return self._request("POST", "/students/vote", json={"studentId": student_id})["student"]

    def stats(self) -> Dict[str, Any]:
        return self._request("GET", "/students/stats")["stats"]

    # -- administration ---------------------------------------------------

    def list_students(self, **params: Any) -> Dict[str, Any]:
        """Full listing response: students, pagination and echoed filters."""
        clean = {k: v for k, v in params.items() if v is not None}
        return self._request("GET", "/students", params=clean)

    def create_student(
        self,
        roll_number: str,
        image_url: str,
        gender: str,
        instagram_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {"rollNumber": roll_number, "imageUrl": image_url, "gender": gender}
        if instagram_id is not None:
            payload["instagramId"] = instagram_id
        return self._request("POST", "/students", json=payload)["student"]

    def get_student(self, student_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/students/{student_id}")["student"]

    def update_student(self, student_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/students/{student_id}", json=patch)["student"]

    def deactivate_student(self, student_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/students/{student_id}")["student"]


class VotingSession:
    """Client-side state for one person playing rounds.

    ``handle_vote`` is a no-op while a vote is in flight, so double clicks
    cannot vote twice. After a successful vote the session waits
    ``confirmation_delay`` seconds (the on-screen confirmation) and then
    loads the next pair with the current filter.
    """

    def __init__(
        self,
        client: FacesmashClient,
        confirmation_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.confirmation_delay = confirmation_delay
        self._sleep = sleep

        self.students: List[Dict[str, Any]] = []
        self.selected_gender = "all"
        self.voting = False
        self.voted_student_id: Optional[str] = None
        self.stats: Optional[Dict[str, Any]] = None
        self.show_stats = False
        self.error: Optional[str] = None

    def fetch_random_students(self, gender: Optional[str] = None) -> None:
        """Load a new pair; on failure keep the old pair and set ``error``."""
        gender = gender or self.selected_gender
        self.error = None
        try:
            students = self.client.random_students(gender=gender, count=2)
        except FacesmashAPIError as exc:
            log.warning("Could not load students: %s", exc)
            self.error = exc.message
            return
        except httpx.HTTPError as exc:
            log.warning("Could not load students: %s", exc)
            self.error = "Failed to fetch students. Please try again."
            return
        if len(students) < 2:
            self.error = "Not enough students found for comparison"
            return
        self.students = students

    def fetch_stats(self) -> None:
        """Stats are decorative; a failure leaves the previous numbers."""
        try:
            self.stats = self.client.stats()
        except (FacesmashAPIError, httpx.HTTPError) as exc:
            log.warning("Could not load stats: %s", exc)

    def handle_vote(self, student_id: str) -> Optional[Dict[str, Any]]:
        """Vote for ``student_id`` and move to the next round.

        Returns the server's {id, rollNumber, upvotes} on success, None if
        the vote was ignored or failed.
        """
        if self.voting:
            return None

        self.voting = True
        self.voted_student_id = student_id
        try:
            result = self.client.vote(student_id)
        except FacesmashAPIError as exc:
            self.error = exc.message
            result = None
        except httpx.HTTPError as exc:
            log.warning("Vote failed: %s", exc)
            self.error = "Failed to record vote. Please try again."
            result = None

        if result is not None:
            self._sleep(self.confirmation_delay)
            self.fetch_random_students(self.selected_gender)

        self.voted_student_id = None
        self.voting = False
        return result

    def set_gender_filter(self, gender: str) -> None:
        self.selected_gender = gender
        self.fetch_random_students(gender)

    def load_next_round(self) -> None:
        self.fetch_random_students(self.selected_gender)

    def toggle_stats(self) -> None:
        if not self.show_stats:
            self.fetch_stats()
        self.show_stats = not self.show_stats
