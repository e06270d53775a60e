import unittest
from unittest import mock

import requests

from collection.artic import ArticPageFetcher
from collection.fetcher import FetchError


def _response(status_code=200, payload=None, *, bad_json=False):
    response = mock.Mock(spec=requests.Response)
    response.status_code = status_code
    if bad_json:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


def _payload(ids, total):
    return {
        "pagination": {"total": total, "limit": len(ids), "current_page": 1},
        "data": [{"id": value, "title": f"Artwork {value}", "date_start": 1900} for value in ids],
    }


class ArticPageFetcherTests(unittest.TestCase):
    def setUp(self) -> None:
        self.http = mock.Mock(spec=requests.Session)
        self.sleeps = []
        self.fetcher = ArticPageFetcher(
            "https://example.test/api/v1/",
            retries=2,
            backoff_s=0.25,
            session=self.http,
            sleep=self.sleeps.append,
        )

    def test_fetch_page_builds_request_and_parses_records(self) -> None:
        self.http.get.return_value = _response(payload=_payload([10, 11, 12], 129000))

        page = self.fetcher.fetch_page(3, 12)

        args, kwargs = self.http.get.call_args
        self.assertEqual(args[0], "https://example.test/api/v1/artworks")
        self.assertEqual(kwargs["params"]["page"], 3)
        self.assertEqual(kwargs["params"]["limit"], 12)
        self.assertTrue(kwargs["params"]["fields"].startswith("id,title"))
        self.assertEqual([record.id for record in page.records], [10, 11, 12])
        self.assertEqual(page.records[0].get("title"), "Artwork 10")
        self.assertEqual(page.total_records, 129000)

    def test_retries_transient_errors_with_backoff(self) -> None:
        self.http.get.side_effect = [
            requests.ConnectionError("reset"),
            _response(status_code=503),
            _response(payload=_payload([1], 1)),
        ]

        page = self.fetcher.fetch_page(1, 12)

        self.assertEqual(len(page.records), 1)
        self.assertEqual(self.sleeps, [0.25, 0.5])

    def test_gives_up_after_retries(self) -> None:
        self.http.get.side_effect = requests.Timeout("slow")

        with self.assertRaises(FetchError) as ctx:
            self.fetcher.fetch_page(2, 12)

        self.assertEqual(ctx.exception.page_index, 2)
        self.assertEqual(self.http.get.call_count, 3)

    def test_client_errors_are_not_retried(self) -> None:
        self.http.get.return_value = _response(status_code=404)

        with self.assertRaises(FetchError) as ctx:
            self.fetcher.fetch_page(1, 12)

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(self.http.get.call_count, 1)

    def test_malformed_payloads_raise_fetch_error(self) -> None:
        cases = [
            _response(bad_json=True),
            _response(payload=["not", "a", "dict"]),
            _response(payload={"data": [], "pagination": {}}),
            _response(payload={"data": [{"title": "no id"}], "pagination": {"total": 1}}),
            _response(payload={"pagination": {"total": 1}}),
        ]
        for response in cases:
            self.http.get.return_value = response
            with self.assertRaises(FetchError):
                self.fetcher.fetch_page(1, 12)

    def test_oversized_page_is_truncated(self) -> None:
        self.http.get.return_value = _response(payload=_payload(list(range(1, 6)), 50))

        page = self.fetcher.fetch_page(1, 3)

        self.assertEqual([record.id for record in page.records], [1, 2, 3])

    def test_rejects_invalid_arguments(self) -> None:
        with self.assertRaises(ValueError):
            self.fetcher.fetch_page(0, 12)
        with self.assertRaises(ValueError):
            self.fetcher.fetch_page(1, 101)
        self.http.get.assert_not_called()

    def test_from_settings_reads_remote_block(self) -> None:
        fetcher = ArticPageFetcher.from_settings(
            {"remote": {"base_url": "http://local.test", "fields": ["title"], "retries": 0}},
            session=self.http,
        )
        self.assertEqual(fetcher.base_url, "http://local.test")
        self.assertEqual(fetcher.fields, ["id", "title"])
        self.assertEqual(fetcher.retries, 0)


if __name__ == "__main__":
    unittest.main()
