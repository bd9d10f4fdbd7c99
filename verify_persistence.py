import time
import subprocess
import httpx
import sys
import os
import signal
import uuid

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"
HEADERS = {"X-Restaurant-ID": f"persist-{uuid.uuid4().hex[:8]}"}

def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        except Exception as e:
            print(f"Connect error: {e}")
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False

def start_server(echo=False):
    env = {**os.environ, "DB_ECHO": "True"} if echo else None
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "pos_ledger.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env,
    )

def stop_server(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()

def run_verification():
    # 1. Start Server (First Run)
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server(echo=True)

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise Exception("Server start failed")

        # 2. Open a drawer session and take a payout
        print("\n--- [Step 2] Opening Session and Recording Payout ---")
        resp = httpx.post(
            f"{BASE_URL}{API_PREFIX}/accounting/session/open",
            json={"staff_id": "persist-staff", "opening_balance": "500"},
            headers=HEADERS,
        )
        if resp.status_code != 201:
            raise Exception(f"Session open failed: {resp.status_code} {resp.text}")
        session_id = resp.json()["id"]
        print(f"✅ Session Opened: {session_id}")

        resp = httpx.post(
            f"{BASE_URL}{API_PREFIX}/accounting/payouts",
            json={"amount": "120", "category": "Supplies", "processed_by": "persist-staff"},
            headers=HEADERS,
        )
        if resp.status_code != 201:
            raise Exception(f"Payout failed: {resp.status_code} {resp.text}")
        print("✅ Payout Recorded")

    finally:
        print("\n--- [Step 3] Stopping Server ---")
        stop_server(proc)

    time.sleep(2) # Wait for port release

    # 3. Restart Server
    print("\n--- [Step 4] Restarting Server (Verification) ---")
    proc2 = start_server()

    try:
        if not wait_for_server():
            raise Exception("Server restart failed")

        # 4. The session and its drawer movements must have survived the restart
        print("\n--- [Step 5] Verifying Session Metrics (Post-Restart) ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/accounting/session", headers=HEADERS)
        metrics = resp.json().get("session") if resp.status_code == 200 else None

        if metrics and metrics["session_id"] == session_id and metrics["expected_cash"] == "380.00":
            print("✅ Session Persisted")
            print(metrics)
        else:
            print(f"❌ Persistence Check Failed: {resp.status_code} {resp.text}")
            sys.exit(1)

        # 5. Close it so the next run starts clean
        print("\n--- [Step 6] Closing Session ---")
        resp = httpx.post(
            f"{BASE_URL}{API_PREFIX}/accounting/session/close",
            json={"session_id": session_id, "staff_id": "persist-staff", "actual_balance": "380"},
            headers=HEADERS,
        )
        if resp.status_code == 200 and resp.json()["variance"] == "0.00":
            print("✅ Session Closed With Zero Variance")
        else:
            print(f"❌ Close Failed: {resp.status_code} {resp.text}")
            sys.exit(1)

    finally:
        print("\n--- [Step 7] Stopping Server ---")
        stop_server(proc2)

if __name__ == "__main__":
    run_verification()
