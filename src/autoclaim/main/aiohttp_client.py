import time

import aiohttp

from autoclaim.main.config import get_settings
from autoclaim.main.logging import get_logger

logger = get_logger(__name__)

SLOW_DNS_THRESHOLD_MS = 2000


class AioHttpClient:
    session: aiohttp.ClientSession = None

    def _create_trace_config(self) -> aiohttp.TraceConfig:
        """Create TraceConfig for DNS and connection timing observability."""
        trace = aiohttp.TraceConfig()

        async def on_dns_start(session, trace_config_ctx, params):
            trace_config_ctx._dns_start_time = time.perf_counter()

        async def on_dns_end(session, trace_config_ctx, params):
            if hasattr(trace_config_ctx, "_dns_start_time"):
                dns_duration_ms = (time.perf_counter() - trace_config_ctx._dns_start_time) * 1000

                if dns_duration_ms > SLOW_DNS_THRESHOLD_MS:
                    logger.warning(
                        f"SLOW DNS resolution detected for {params.host}",
                        extra={
                            "event": "dns_slow",
                            "host": params.host,
                            "duration_ms": int(dns_duration_ms),
                            "threshold_ms": SLOW_DNS_THRESHOLD_MS,
                        },
                    )
                else:
                    logger.debug(
                        f"DNS resolution completed for {params.host}",
                        extra={
                            "event": "dns_resolution",
                            "host": params.host,
                            "duration_ms": int(dns_duration_ms),
                        },
                    )

        async def on_conn_start(session, trace_config_ctx, params):
            trace_config_ctx._conn_start_time = time.perf_counter()

        async def on_conn_end(session, trace_config_ctx, params):
            if hasattr(trace_config_ctx, "_conn_start_time"):
                conn_duration_ms = (time.perf_counter() - trace_config_ctx._conn_start_time) * 1000
                logger.debug(
                    "TCP connection established to clue queue",
                    extra={
                        "event": "tcp_connection",
                        "duration_ms": int(conn_duration_ms),
                    },
                )

        trace.on_dns_resolvehost_start.append(on_dns_start)
        trace.on_dns_resolvehost_end.append(on_dns_end)
        trace.on_connection_create_start.append(on_conn_start)
        trace.on_connection_create_end.append(on_conn_end)

        return trace

    def start(self):
        settings = get_settings()

        # Per-request timeouts can override these
        timeout = aiohttp.ClientTimeout(
            total=settings.queue_request_timeout_seconds,
            connect=settings.queue_connect_timeout_seconds,
        )

        connector = aiohttp.TCPConnector(
            limit=100,  # Total connection pool size
            limit_per_host=30,  # Upper bound for concurrent claim calls to one host
            enable_cleanup_closed=True,
            use_dns_cache=True,
            ttl_dns_cache=300,
        )

        self.session = aiohttp.ClientSession(
            timeout=timeout,
            connector=connector,
            trace_configs=[self._create_trace_config()],
            headers={"User-Agent": settings.queue_user_agent},
        )

    @property
    def started(self) -> bool:
        return self.session is not None and not self.session.closed

    async def stop(self):
        if self.session is not None:
            await self.session.close()
        self.session = None

    def __call__(self) -> aiohttp.ClientSession:
        if not self.started:
            # Sessions run outside the server (CLI, tests) start the pool lazily
            self.start()
        return self.session


aiohttp_client = AioHttpClient()
