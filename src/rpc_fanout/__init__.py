import asyncio
import logging
import urllib.parse

import logfire
from pydantic import BaseModel

from . import jsonrpc

logger = logging.getLogger(__name__)


class NamedParameters(BaseModel):
    a: float
    b: float
    c: str


def say_hello(params: list[str]) -> str:
    return f"Hello {' '.join(params)}"


def call_named_parameters(params: NamedParameters) -> str:
    product = params.a * params.b
    if product.is_integer():
        product = int(product)
    return f"{params.c} {product}"


async def animals_make_noise(noise: list[str]) -> str:
    """Subscribers of this method hear every noise other clients make."""
    return " ".join(el.upper() for el in noise)


def demo_methods() -> jsonrpc.MethodTable:
    methods = jsonrpc.MethodTable()
    methods.rpc_method("sayHello", say_hello, params_type=list[str])
    methods.rpc_method(
        "callNamedParameters", call_named_parameters, params_type=NamedParameters
    )
    methods.rpc_method(
        "animalsMakeNoise", animals_make_noise, observable=True, params_type=list[str]
    )
    return methods


async def _run(url: urllib.parse.ParseResult, options: jsonrpc.RespondOptions):
    server = jsonrpc.JsonRpcServer(demo_methods(), options)
    listener = await server.start(url)

    with logfire.span("Serving {url=}", url=url.geturl()):
        logger.info("Listening on %s", url.geturl())
        try:
            await listener.serve_forever()
        finally:
            listener.close()
            await listener.wait_closed()


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser()
    parser.add_argument(
        "listen",
        help="URI to listen on. Examples: ws://0.0.0.0:8000 tcp://localhost:1234 unix:///tmp/rpc.sock",
        type=urllib.parse.urlparse,
    )
    parser.add_argument(
        "--public-error-stack",
        action="store_true",
        help="Include tracebacks of internal errors in the error data sent to clients",
    )
    parser.add_argument(
        "--enable-internal-methods",
        action="store_true",
        help="Expose rpc.subscribe, rpc.unsubscribe and rpc.emit to clients",
    )
    parser.add_argument(
        "--enable-logfire",
        action="store_true",
        help="Enables sending logs and spans to Logfire",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
    )

    args = parser.parse_args()

    if args.enable_logfire:
        logfire.configure(scrubbing=False)
        logging.basicConfig(
            level=args.log_level, handlers=[logfire.LogfireLoggingHandler()]
        )
    else:
        logfire.configure(send_to_logfire=False, console=False)
        logging.basicConfig(level=args.log_level)

    options = jsonrpc.RespondOptions(
        public_error_stack=args.public_error_stack,
        enable_internal_methods=args.enable_internal_methods,
    )

    logging.info("Starting loop", extra={"cliArgs": vars(args)})
    try:
        asyncio.run(_run(args.listen, options))
    except KeyboardInterrupt:
        logger.info("Interrupted")
