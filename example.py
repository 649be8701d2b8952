# example.py
# A small example demonstrating how to use the broken_links
# library to check the links on a page and list the broken ones.

import asyncio
import logging

from broken_links import check_url

# --- Configuration ---
# Enable logging to see each navigation and the deadline bookkeeping.
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

TARGET_URL = "https://www.python.org/"


async def main():
    print(f"[*] Checking links on: {TARGET_URL}\n")

    # The httpx driver needs no browser install; use "playwright" for
    # pages that build their links with JavaScript.
    report = await check_url(
        TARGET_URL,
        driver="httpx",
        options={
            "link_limit": 20,
            "link_order": "RANDOM",
            "max_retries": 1,
            # Redirects are followed, so this page must end on a 2xx.
            "per_link_options": {
                "https://www.python.org/downloads/": {"expected_status_code": {"status_class": "2xx"}},
            },
        },
    )

    print("\n--- CHECK COMPLETE ---")
    print(
        f"{report.link_count} link(s): {report.passing_link_count} passing, "
        f"{report.failing_link_count} failing"
    )

    for error in report.errors:
        print(f"[!] {error.error_type}: {error.error_message}")

    broken = [r for r in report.followed_link_results if not r.link_passed]
    if not broken:
        print("\nNo broken links found.")
        return

    print("\n--- Broken Links ---")
    for result in broken:
        status = result.status_code if result.status_code is not None else "no response"
        print(f"- {result.target_uri} ({status})")
        print(f"    {result.error_message}")


if __name__ == "__main__":
    asyncio.run(main())
