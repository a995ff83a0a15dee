"""
FinSent Dashboard - Main Entry Point
Waits for the backend to warm up, then renders price / sentiment / trend chart

Usage:
    py run_dashboard.py                          # AAPL, 1W, area chart
    py run_dashboard.py --symbol MSFT --timeframe 1Y --chart-type line
    py run_dashboard.py --debug --debug-seconds 5  # simulate a cold start first
"""

import argparse
import asyncio
import logging
import sys
import webbrowser

from finsent.analysis import calculate_domains, price_summary
from finsent.config import Settings
from finsent.dashboard import ChartRenderer, select_render
from finsent.data_sources import ChartDataClient, HttpLivenessProbe, Timeframe
from finsent.errors import MalformedPayload, NetworkError
from finsent.readiness import ReadinessPoller, ReadinessSnapshot, ReadinessState


class SentimentDashboard:
    """Main orchestrator: readiness gate, then chart stack"""

    def __init__(self, settings: Settings, symbol: str = 'AAPL', timeframe='1W',
                 chart_type: str = 'area', output_path: str = 'output/chart.html',
                 open_browser: bool = True):
        self.settings = settings
        self.symbol = symbol.upper()
        self.timeframe = Timeframe.parse(timeframe)
        self.chart_type = chart_type
        self.open_browser = open_browser

        self.probe = HttpLivenessProbe(settings.base_url, timeout=settings.probe_timeout)
        self.poller = ReadinessPoller(
            self.probe,
            interval=settings.probe_interval,
            timeout=settings.probe_timeout,
            max_attempts=settings.max_attempts,
        )
        self.poller.on_state_change(self._on_readiness)
        self.renderer = ChartRenderer(output_path=output_path)

    def _on_readiness(self, snap: ReadinessSnapshot):
        if snap.state is ReadinessState.DEBUG:
            print(f"[LOADING] Debug mode: simulating cold start... {snap.progress:.0f}%")
        elif snap.state is ReadinessState.READY:
            print("[OK] Backend ready")
        else:
            print(f"[LOADING] Warming up the backend... {snap.progress:.0f}% "
                  f"(attempt {snap.attempt_count})")

    async def _simulate_cold_start(self, seconds: float):
        self.poller.enter_debug()
        await asyncio.sleep(seconds)
        self.poller.exit_debug()

    async def _until_ready(self, debug_seconds: float):
        if debug_seconds > 0:
            await self._simulate_cold_start(debug_seconds)
        await self.poller.wait_ready()

    async def wait_for_backend(self, max_wait: float | None = None, debug_seconds: float = 0) -> bool:
        """max_wait counts from start, so it includes any simulated cold start."""
        print(f"[INIT] Probing {self.settings.base_url}/ping ...")
        self.poller.start()
        try:
            await asyncio.wait_for(self._until_ready(debug_seconds), timeout=max_wait)
            return True
        except asyncio.TimeoutError:
            print(f"[FAIL] Backend not ready after {max_wait:.0f}s")
            return False
        finally:
            self.poller.stop()
            await self.probe.close()

    async def render(self) -> str:
        async with ChartDataClient(self.settings.base_url, timeout=self.settings.request_timeout) as client:
            try:
                quote = await client.fetch_live_quote(self.symbol)
                print(f"[{quote.symbol}] ${quote.price:.2f} {quote.change_text}")
            except (NetworkError, MalformedPayload) as e:
                print(f"[{self.symbol}] Error loading ticker data: {e}")

            samples = await client.fetch_samples(self.symbol, self.timeframe)

        print(f"[CHART] {len(samples)} samples ({self.timeframe.value})")
        summary = price_summary(samples)
        if summary:
            print(f"[CHART] Low: ${summary[0]:.2f}  High: ${summary[1]:.2f}")

        domains = calculate_domains(samples)
        instructions = select_render(samples, self.chart_type, domains)
        fig = self.renderer.build_figure(
            instructions, title=f"{self.symbol} - price, sentiment & search trend ({self.timeframe.value})")
        return self.renderer.save(fig)

    async def run(self, max_wait: float | None = None, debug_seconds: float = 0) -> int:
        print("=" * 60)
        print("FINSENT DASHBOARD")
        print(f"Symbol: {self.symbol} | Timeframe: {self.timeframe.value} | Chart: {self.chart_type}")
        print("=" * 60)

        if not await self.wait_for_backend(max_wait, debug_seconds):
            return 1

        try:
            path = await self.render()
        except (NetworkError, MalformedPayload) as e:
            print(f"[FAIL] Error loading chart data: {e}")
            return 1

        print(f"\n[DASHBOARD] Saved: {path}")
        if self.open_browser:
            webbrowser.open(f'file://{path}')
        return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='FinSent price / sentiment dashboard')
    parser.add_argument('--symbol', default='AAPL', help='Ticker symbol (default: AAPL)')
    parser.add_argument('--timeframe', default='1W', type=Timeframe.parse,
                        help='1W, 1M, 1Y or ALL (default: 1W)')
    parser.add_argument('--chart-type', default='area', choices=['area', 'line'],
                        help='Price series representation (default: area)')
    parser.add_argument('--base-url', default=None,
                        help='Backend base URL (default: $FINSENT_API_URL or http://127.0.0.1:8000)')
    parser.add_argument('--output', default='output/chart.html', help='HTML output path')
    parser.add_argument('--max-wait', type=float, default=None,
                        help='Give up if the backend is not ready after N seconds, debug period included')
    parser.add_argument('--debug', action='store_true', help='Simulate a cold start first')
    parser.add_argument('--debug-seconds', type=float, default=5.0,
                        help='Length of the simulated cold start (default: 5)')
    parser.add_argument('--no-browser', action='store_true', help="Don't open the chart")
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s %(message)s',
    )

    settings = Settings.from_env().with_overrides(base_url=args.base_url)
    dashboard = SentimentDashboard(
        settings,
        symbol=args.symbol,
        timeframe=args.timeframe,
        chart_type=args.chart_type,
        output_path=args.output,
        open_browser=not args.no_browser,
    )
    try:
        return asyncio.run(dashboard.run(
            max_wait=args.max_wait,
            debug_seconds=args.debug_seconds if args.debug else 0,
        ))
    except KeyboardInterrupt:
        print("\n[STOP] Shutting down...")
        return 130


if __name__ == '__main__':
    sys.exit(main())
