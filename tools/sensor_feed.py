# -- coding: utf-8 --

import argparse
import datetime
import socket
import time


def _format_ts() -> str:
	ts = datetime.datetime.now()
	return f"{ts:%Y-%m-%d %H:%M:%S}.{ts.microsecond // 1000:03d}"


def _read_samples(path: str) -> list[str]:
	samples = []
	with open(path, "r", encoding="utf-8") as f:
		for line in f:
			text = line.split("#", 1)[0].strip()
			if text:
				samples.append(text)
	return samples


def main():
	p = argparse.ArgumentParser(description="Stream distance samples to the TCP sensor input")
	p.add_argument('--host', default='127.0.0.1', help='Sensor listener host')
	p.add_argument('--port', type=int, default=9100, help='Sensor listener port')
	p.add_argument('--file', default='config/samples_demo.txt', help='Samples, one mm value per line')
	p.add_argument('--interval-ms', type=int, default=100, help='Delay between samples')
	p.add_argument('--repeat', type=int, default=1, help='Number of passes over the file (0=forever)')
	args = p.parse_args()

	samples = _read_samples(args.file)
	if not samples:
		raise SystemExit(f"no samples in {args.file}")
	interval_s = max(args.interval_ms, 1) / 1000.0
	with socket.create_connection((args.host, args.port), timeout=2.0) as conn:
		conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		print(f"{_format_ts()} CONNECT {args.host}:{args.port} samples={len(samples)}")
		passes = 0
		while args.repeat <= 0 or passes < args.repeat:
			for value in samples:
				conn.sendall(f"{value}\n".encode("ascii"))
				time.sleep(interval_s)
			passes += 1
			print(f"{_format_ts()} PASS {passes} done")
	print(f"{_format_ts()} CLOSE {args.host}:{args.port}")


if __name__ == "__main__":
	main()
