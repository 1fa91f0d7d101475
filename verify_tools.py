# verify_tools.py
import os, sys, shutil, subprocess
from dotenv import load_dotenv
import boto3
from botocore.exceptions import ClientError, NoCredentialsError

load_dotenv()  # loads .env from current directory

AWS_REGION = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION", "us-east-1")
BUCKET = os.getenv("AWS_S3_BUCKET") or os.getenv("S3_BUCKET") or "selection-images"
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL") or None
MAGICK_BIN = os.getenv("MAGICK_BIN", "magick")
DCRAW_EMU_BIN = os.getenv("DCRAW_EMU_BIN", "dcraw_emu")


def die(msg, code=1):
    print(f"❌ {msg}")
    sys.exit(code)


print(f"Region: {AWS_REGION} | Bucket: {BUCKET} | Endpoint: {S3_ENDPOINT_URL or 'aws'}")

# 1) Conversion tools on PATH
magick = shutil.which(MAGICK_BIN)
if not magick:
    die(f"{MAGICK_BIN} not found in PATH")
try:
    out = subprocess.run([magick, "-version"], capture_output=True, text=True, timeout=10)
except subprocess.TimeoutExpired:
    die(f"{MAGICK_BIN} -version timed out")
first_line = (out.stdout.splitlines() or ["<no output>"])[0]
print(f"✅ {first_line}")

delegates = next((l for l in out.stdout.splitlines() if l.startswith("Delegates")), "")
for needed in ("heic", "raw"):
    if needed in delegates:
        print(f"✅ Delegate available: {needed}")
    else:
        print(f"⚠️  Delegate missing: {needed} (those formats will fail)")

if shutil.which(DCRAW_EMU_BIN):
    print(f"✅ {DCRAW_EMU_BIN} found (DNG fallback enabled)")
else:
    print(f"⚠️  {DCRAW_EMU_BIN} not found; DNG fallback will fail")

# 2) Bucket reachable
s3 = boto3.client("s3", region_name=AWS_REGION, endpoint_url=S3_ENDPOINT_URL)
try:
    s3.head_bucket(Bucket=BUCKET)
    print(f"✅ S3 OK. Bucket exists: {BUCKET}")
except NoCredentialsError:
    die("No credentials found (check .env)")
except ClientError as e:
    die(f"head_bucket failed: {e}")

print("🎉 All checks passed.")
