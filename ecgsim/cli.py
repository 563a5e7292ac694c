import argparse
import json
import logging
import os
import sys
import time

# Adjust path to find modules if running locally without install
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ecgsim.core.engine import SimulationEngine
from ecgsim.core.enums import AlertPolicy
from ecgsim.core.state import MonitorSettings, SimulationConfig, settings_from_mapping


def build_settings(args) -> MonitorSettings:
    """Settings from an optional JSON file, overridden by explicit flags."""
    config_data = {}
    if args.config:
        try:
            with open(args.config, 'r') as f:
                config_data = json.load(f)
        except (OSError, ValueError) as e:
            print(f"Error loading config: {e}")
            sys.exit(1)

    settings = settings_from_mapping(config_data)
    overrides = {
        'hr': args.hr,
        'hrv': args.hrv,
        'noise': args.noise,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if args.drift:
        overrides['drift_enabled'] = True
    if args.lead_off:
        overrides['lead_off'] = True
    return settings_from_mapping(overrides, base=settings)


def format_status(channel) -> str:
    report = channel.last_report
    if report is None:
        return f"{channel.name}: t={channel.time:6.1f}s | (no evaluation yet)"
    return (
        f"{channel.name}: t={channel.time:6.1f}s | HR: {report.avg_hr:5.1f} | "
        f"CV: {report.cv:.3f} | Quality: {report.quality.quality.value:<4} | "
        f"ST: {report.st_state.value:<10} | {channel.severity.label}"
    )


def run_headless(args):
    """Run the monitor without a display."""
    print(f"Starting Headless ECG Simulation (Duration: {args.duration}s, Channels: {args.channels})...")

    config = SimulationConfig(
        channels=args.channels,
        rng_seed=args.seed,
        alert_policy=AlertPolicy(args.alert_policy),
    )
    engine = SimulationEngine(config, build_settings(args))
    engine.start()

    start_real = time.time()
    frame_period = 1.0 / config.frame_rate
    frames = 0
    report_frames = max(1, int(args.report_interval * config.frame_rate))
    total_frames = int(args.duration * config.sample_rate / config.samples_per_frame)

    for _ in range(total_frames):
        tick_start = time.time()
        engine.tick()
        frames += 1
        if frames % report_frames == 0:
            for channel in engine.channels:
                print(format_status(channel))
        if args.realtime:
            remaining = frame_period - (time.time() - tick_start)
            if remaining > 0:
                time.sleep(remaining)

    end_real = time.time()
    print(f"Simulation completed in {end_real - start_real:.2f}s real time.")

    alerts = engine.combined_alerts
    print(f"Alerts raised: {len(alerts)} (showing last {min(len(alerts), args.show_alerts)})")
    for alert in alerts[-args.show_alerts:] if args.show_alerts else ():
        print(f"  {alert.severity.label:<7} {alert.message}")
    return engine


def main(argv=None):
    parser = argparse.ArgumentParser(description="ECGSim - Synthetic ECG monitor")
    parser.add_argument("--duration", type=float, default=10.0, help="Simulated seconds of signal")
    parser.add_argument("--channels", type=int, default=4, help="Number of independent channels")
    parser.add_argument("--seed", type=int, default=None, help="RNG seed for reproducible runs")
    parser.add_argument("--config", type=str, help="Path to JSON settings file")
    parser.add_argument("--hr", type=float, default=None, help="Target heart rate (bpm)")
    parser.add_argument("--hrv", type=float, default=None, help="Variability gain")
    parser.add_argument("--noise", type=float, default=None, help="Noise gain")
    parser.add_argument("--drift", action="store_true", help="Enable intermittent morphology drift")
    parser.add_argument("--lead-off", action="store_true", help="Simulate a disconnected lead")
    parser.add_argument("--alert-policy", choices=[p.value for p in AlertPolicy],
                        default=AlertPolicy.REPEAT.value, help="Re-alert every cycle or only on onset")
    parser.add_argument("--realtime", action="store_true", help="Pace frames at the display rate")
    parser.add_argument("--report-interval", type=float, default=1.0, help="Seconds between status lines")
    parser.add_argument("--show-alerts", type=int, default=10, help="Number of final alerts to print")
    parser.add_argument("--log-level", default="ERROR",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    run_headless(args)


if __name__ == "__main__":
    main()
