# amm_ledger/monitoring.py
import time
import socket
import threading
import logging
import psutil
from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry
from prometheus_client.exposition import make_wsgi_app
from wsgiref.simple_server import make_server, WSGIServer
from socketserver import ThreadingMixIn

logger = logging.getLogger(__name__)


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """A WSGI server that runs in a separate thread to not block the ledger."""
    allow_reuse_address = True
    daemon_threads = True


class Monitor:
    def __init__(self, host="127.0.0.1", port=9090):
        self.host = host
        self.port = port
        self.server = None
        self.thread = None

        # Isolated registry so several ledgers can live in one process
        self.registry = CollectorRegistry()

        self.op_counter = Counter('amm_operations_total', 'Ledger operations processed', ['operation', 'status'], registry=self.registry)
        self.op_latency = Histogram('amm_operation_latency_seconds', 'Time to process an operation', ['operation'], registry=self.registry)
        self.pool_count = Gauge('amm_pools', 'Number of pools created', registry=self.registry)
        self.amm_k = Gauge('amm_invariant_k', 'Constant product k', ['pool'], registry=self.registry)
        self.lp_supply = Gauge('amm_lp_supply', 'LP share supply', ['pool'], registry=self.registry)
        self.cpu_usage = Gauge('system_cpu_percent', 'Current CPU usage percent', registry=self.registry)
        self.memory_usage = Gauge('system_memory_percent', 'Current memory usage percent', registry=self.registry)

    def start_server(self, max_retries: int = 5, retry_delay: float = 2):
        """Start the Prometheus HTTP exporter in a background thread."""
        app = make_wsgi_app(self.registry)

        for attempt in range(max_retries):
            try:
                self.server = make_server(self.host, self.port, app, ThreadingWSGIServer)
                self.server.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

                self.thread = threading.Thread(target=self.server.serve_forever)
                self.thread.daemon = True
                self.thread.start()
                logger.info(f"Prometheus server started on http://{self.host}:{self.port}")
                return
            except OSError as e:
                if e.errno == 98 and attempt < max_retries - 1:  # Address already in use
                    logger.warning(f"Port {self.port} in use, retrying in {retry_delay}s (attempt {attempt+1}/{max_retries})...")
                    time.sleep(retry_delay)
                else:
                    logger.error(f"Failed to bind to port {self.port}: {e}")
                    raise

    def stop_server(self):
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
            if self.thread:
                self.thread.join()
                self.thread = None
            logger.info("Prometheus server stopped.")

    def record_op(self, operation: str, status: str, latency: float):
        self.op_counter.labels(operation=operation, status=status).inc()
        self.op_latency.labels(operation=operation).observe(latency)

    def record_pool(self, pool):
        label = pool.address.hex()
        self.amm_k.labels(pool=label).set(pool.k)
        self.lp_supply.labels(pool=label).set(pool.lp_supply)

    def update_system(self, pool_count: int):
        self.pool_count.set(pool_count)
        self.cpu_usage.set(psutil.cpu_percent())
        self.memory_usage.set(psutil.virtual_memory().percent)
