"""
Command-line entry point for keyfix.

Subcommands:
  responder  run the echo responder
  relay      run the key-fixing relay in front of a responder
  initiator  run one exchange against a responder or relay
  demo       run all three in one process and show what the relay read
"""

import argparse
import logging
import sys

from ..config import ConfigError, KeyfixConfig
from ..crypto.utils import format_hex
from .initiator import Initiator
from .relay import Relay, fixed_key
from .responder import Responder
from .server import CONNECTION_ERRORS


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='keyfix',
        description='Diffie-Hellman echo protocol with a parameter-injection relay',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Terminal 1: responder on 9000
  keyfix responder --port 9000

  # Terminal 2: relay on 9001 forwarding to the responder
  keyfix relay --port 9001 --upstream-port 9000

  # Terminal 3: initiator talking to the relay
  keyfix initiator --port 9001 --message "attack at dawn"

  # Everything in one process
  keyfix demo
        """
    )
    parser.add_argument('--host', help='Bind/connect address')
    parser.add_argument('--log-level', help='Logging level (default: INFO)')
    parser.add_argument('--timeout', type=float, help='Socket timeout in seconds')

    sub = parser.add_subparsers(dest='command', required=True)

    responder = sub.add_parser('responder', help='Run the echo responder')
    responder.add_argument('--port', type=int, help='Listening port')

    relay = sub.add_parser('relay', help='Run the key-fixing relay')
    relay.add_argument('--port', type=int, help='Listening port')
    relay.add_argument('--upstream-host', help='Responder host (default: --host)')
    relay.add_argument('--upstream-port', type=int, help='Responder port')

    initiator = sub.add_parser('initiator', help='Run one exchange')
    initiator.add_argument('--port', type=int, help='Port to connect to (default: responder port)')
    initiator.add_argument('--group', help='DH group name: small or modp1536')
    initiator.add_argument('--message', help='Message to send')

    demo = sub.add_parser('demo', help='Run responder, relay and initiator together')
    demo.add_argument('--group', help='DH group name: small or modp1536')
    demo.add_argument('--message', help='Message to send')

    return parser


def _run_responder(config: KeyfixConfig, args) -> int:
    port = args.port if args.port is not None else config.responder_port
    server = Responder().create_server(port, config.host, config.timeout)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    return 0


def _run_relay(config: KeyfixConfig, args) -> int:
    port = args.port if args.port is not None else config.relay_port
    upstream_host = args.upstream_host or config.host
    upstream_port = args.upstream_port if args.upstream_port is not None else config.responder_port
    relay = Relay(upstream_host, upstream_port, timeout=config.timeout)
    server = relay.create_server(port, config.host, config.timeout)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    return 0


def _run_initiator(config: KeyfixConfig, args) -> int:
    port = args.port if args.port is not None else config.responder_port
    initiator = Initiator(config.host, port, group=config.group, timeout=config.timeout)
    try:
        reply = initiator.run(config.message_bytes)
    except CONNECTION_ERRORS as e:
        print(f"Exchange failed ({type(e).__name__}): {e}")
        return 1

    print(f"Sent:  {config.message}")
    print(f"Reply: {reply.decode('utf-8', errors='replace')}")
    print(f"Key:   {format_hex(initiator.session.key)}")
    return 0 if reply == config.message_bytes else 2


def _run_demo(config: KeyfixConfig, args) -> int:
    responder_server = Responder().create_server(0, config.host, config.timeout)
    with responder_server:
        intercepted = []
        relay = Relay(config.host, responder_server.actual_port,
                      on_intercept=intercepted.append, timeout=config.timeout)
        with relay.create_server(0, config.host, config.timeout) as relay_server:
            initiator = Initiator(config.host, relay_server.actual_port,
                                  group=config.group, timeout=config.timeout)
            try:
                reply = initiator.run(config.message_bytes)
            except CONNECTION_ERRORS as e:
                print(f"Exchange failed ({type(e).__name__}): {e}")
                return 1

    print(f"Initiator sent:     {config.message}")
    print(f"Initiator got back: {reply.decode('utf-8', errors='replace')}")
    print(f"Initiator key:      {format_hex(initiator.session.key)}")
    print(f"Predicted key:      {format_hex(fixed_key())}")
    for interception in intercepted:
        print(f"Relay read {interception.direction}: "
              f"{interception.plaintext.decode('utf-8', errors='replace')}")
    return 0


COMMANDS = {
    'responder': _run_responder,
    'relay': _run_relay,
    'initiator': _run_initiator,
    'demo': _run_demo,
}


def main(argv=None) -> int:
    """Main entry point for the keyfix CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = KeyfixConfig.from_env().override(
            host=args.host,
            log_level=args.log_level,
            timeout=args.timeout,
            group_name=getattr(args, 'group', None),
            message=getattr(args, 'message', None),
        )
    except ConfigError as e:
        print(f"Invalid configuration: {e}")
        return 1

    logging.basicConfig(
        level=config.log_level.upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    return COMMANDS[args.command](config, args)


if __name__ == '__main__':
    sys.exit(main())
