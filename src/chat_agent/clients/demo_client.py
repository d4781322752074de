#!/usr/bin/env python3
"""
Chat Agent Client

A command-line client for the chat agent API. Sends one message to an
assistant and prints the streamed answer as it arrives.
"""

import argparse
import json
import sys
from collections.abc import Iterator

import requests

from chat_agent.infrastructure.platform_manager import create_logger
from chat_agent.services.streaming_relay import IncompleteStreamError, decode_sse

CLIENT_TIMEOUT = 120  # Seconds

logger = create_logger(logger_name="chat-client", log_level="INFO")


def stream_chat(
    message: str,
    tenant_id: str,
    user_id: str,
    session_id: str | None = None,
    assistant: str = "operations",
    url: str = "http://127.0.0.1",
    port: int | None = None,
) -> tuple[str | None, Iterator[str]]:
    """
    Send one chat turn and return the session id plus an iterator of answer chunks.

    Raises:
        requests.RequestException: If the HTTP request fails.
    """
    base_url = f"{url}:{port}" if port is not None else url
    payload = {"message": message, "tenant_id": tenant_id, "user_id": user_id}
    if session_id:
        payload["session_id"] = session_id

    response = requests.post(
        f"{base_url}/chat/{assistant}",
        json=payload,
        headers={"Accept": "text/event-stream"},
        stream=True,
        timeout=CLIENT_TIMEOUT,
    )
    if response.status_code != 200:
        try:
            detail = response.json().get("error", response.text)
        except ValueError:
            detail = response.text
        response.close()
        raise requests.HTTPError(f"{response.status_code} - {detail}", response=response)

    def chunks() -> Iterator[str]:
        with response:
            for event in decode_sse(response.iter_lines(decode_unicode=True)):
                if not event.done:
                    yield event.content

    return response.headers.get("X-Session-ID"), chunks()


def list_sessions(
    tenant_id: str, user_id: str, url: str = "http://127.0.0.1", port: int | None = None
) -> list[dict[str, str]]:
    base_url = f"{url}:{port}" if port is not None else url
    response = requests.get(
        f"{base_url}/chat/sessions",
        params={"tenant_id": tenant_id, "user_id": user_id},
        timeout=10,
    )
    response.raise_for_status()
    return list(response.json().get("sessions", []))


def parse_arguments() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Chat Agent Client - Send messages to a chat agent assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s "How many briefings are pending today?" --tenant acme --user u1
  %(prog)s "Draft a Meta ad for our spring sale" --assistant marketing --tenant acme --user u1
  %(prog)s --sessions --tenant acme --user u1 --port 9000
        """,
    )

    parser.add_argument("message", nargs="?", help="The message to send to the assistant")
    parser.add_argument("--tenant", required=True, help="Tenant id")
    parser.add_argument("--user", required=True, help="User id")
    parser.add_argument("--session", default=None, help="Continue an existing session")
    parser.add_argument(
        "--assistant",
        default="operations",
        help="Assistant name (default: operations)",
    )
    parser.add_argument(
        "--url",
        default="http://127.0.0.1",
        help="Base URL of the agent server (default: http://127.0.0.1)",
    )
    parser.add_argument("--port", type=int, default=None, help="Port of the agent server")
    parser.add_argument("--sessions", action="store_true", help="List sessions and exit")

    args = parser.parse_args()
    if not args.sessions and not args.message:
        parser.error("a message is required unless --sessions is given")
    return args


def main() -> None:
    """Main function to handle command line arguments and make the request."""
    args = parse_arguments()

    try:
        if args.sessions:
            sessions = list_sessions(args.tenant, args.user, args.url, args.port)
            logger.info(f"Sessions: {json.dumps(sessions, indent=2)}")
            return

        session_id, chunks = stream_chat(
            args.message,
            args.tenant,
            args.user,
            session_id=args.session,
            assistant=args.assistant,
            url=args.url,
            port=args.port,
        )
        for chunk in chunks:
            sys.stdout.write(chunk)
            sys.stdout.flush()
        sys.stdout.write("\n")
        logger.info(f"Session: {session_id}")

    except IncompleteStreamError as e:
        logger.error(f"Stream interrupted: {e}")
        sys.exit(1)
    except requests.RequestException as e:
        logger.error(f"Request failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
