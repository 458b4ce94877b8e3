"""Minimal chat server for trying the client locally.

Relays every text frame to all connected clients, sender included, so
each client sees its own messages through the same path as everyone
else's.

    pip install websockets
    python examples/broadcast_server.py --port 3001
"""

import argparse
import asyncio

from websockets.asyncio.server import broadcast, serve

clients = set()


async def relay(ws):
    clients.add(ws)
    print(f"[+] {ws.remote_address} connected ({len(clients)} online)")
    try:
        async for message in ws:
            broadcast(clients, message)
    finally:
        clients.discard(ws)
        print(f"[-] {ws.remote_address} disconnected ({len(clients)} online)")


async def main(host: str, port: int):
    async with serve(relay, host, port) as server:
        print(f"Chat relay listening on ws://{host}:{port}/ws")
        print("Press Ctrl+C to stop.\n")
        await server.serve_forever()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="wschat broadcast server")
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=3001)
    args = parser.parse_args()

    try:
        asyncio.run(main(args.host, args.port))
    except KeyboardInterrupt:
        print("Stopped.")
