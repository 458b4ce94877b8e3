"""Console chat client.

Type a line to send it, ``/retry`` to reconnect after the client gave
up, ``/quit`` to leave.

    pip install wschat

    # Start the relay first
    python examples/broadcast_server.py

    python examples/console_chat.py --name alice
    python examples/console_chat.py --name bob --url ws://localhost:3001/ws
"""

import argparse

from wschat import ClientConfig, SyncChatSession, describe
from wschat.constants import MAX_MESSAGE_LENGTH


def main(url: str, name: str):
    client = SyncChatSession(ClientConfig(url=url))

    @client.on_message
    def show(message):
        who = "You" if message.author == client.identity else message.author
        print(f"[{message.time_label()}] {who}: {message.body}")

    @client.on_state_change
    def show_state(state):
        print(f"-- {describe(state).text}")

    @client.on_retries_exhausted
    def gave_up():
        print("-- Offline. Type /retry to reconnect.")

    client.start(name)
    try:
        while True:
            try:
                line = input()
            except EOFError:
                break
            if line == "/quit":
                break
            if line == "/retry":
                client.retry()
            elif len(line.strip()) > MAX_MESSAGE_LENGTH:
                print(f"-- Not sent: longer than {MAX_MESSAGE_LENGTH} characters")
            elif client.send_message(line) is None and line.strip():
                print("-- Not sent: not connected")
    except KeyboardInterrupt:
        pass
    finally:
        client.end()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="wschat console client")
    parser.add_argument("--url", default="ws://localhost:3001/ws")
    parser.add_argument("--name", required=True, help="Display name (max 30 chars)")
    args = parser.parse_args()

    main(args.url, args.name)
