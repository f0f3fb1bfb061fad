import paho.mqtt.client as mqtt
import json
import sys
import time
import random
import threading

from config.settings import ENCRYPTION_KEY
from ledger_services.crypto import encrypt_payload, parse_key

MQTT_BROKER = "broker.hivemq.com"
MQTT_PORT = 1883
MQTT_TOPIC_PREFIX = "bae/sensors"

# These device ids should match the devices registered with the gateway.
SENSORS = {
    "esp32-dht22-001",
    "esp32-dht22-002",
}

BASE_TEMPERATURE = 23.0
BASE_HUMIDITY = 55.0
COLD_CHANCE = 0.10
HOT_CHANCE = 0.05


def generate_reading(rng=random, now=None):
    """
    Produces one DHT22-style reading: 10% cold alerts (15-17 C), 5% hot
    alerts (29-31 C) and comfortable conditions the rest of the time.
    """
    alert_chance = rng.uniform(0.0, 1.0)
    if alert_chance < COLD_CHANCE:
        temperature = rng.uniform(15.0, 17.0)
    elif alert_chance < COLD_CHANCE + HOT_CHANCE:
        temperature = rng.uniform(29.0, 31.0)
    else:
        temperature = BASE_TEMPERATURE + rng.uniform(-2.0, 2.0)

    return {
        "temperature": round(temperature, 2),
        "humidity": round(BASE_HUMIDITY + rng.uniform(-10.0, 10.0), 2),
        "timestamp": int(now if now is not None else time.time()),
    }


def build_message(device_id, reading, key):
    """Encrypts a reading into the hex envelope the gateway forwards to the ledger."""
    ciphertext, nonce = encrypt_payload(reading, key)
    return {
        "deviceId": device_id,
        "ciphertext": "0x" + ciphertext.hex(),
        "nonce": "0x" + nonce.hex(),
        "timestamp": reading["timestamp"],
    }


def sensor_thread(device_id, key, interval):
    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, f"sensor-{device_id}")
    client.connect(MQTT_BROKER, MQTT_PORT, 60)
    client.loop_start()

    topic = f"{MQTT_TOPIC_PREFIX}/{device_id}/data"

    while True:
        reading = generate_reading()
        client.publish(topic, json.dumps(build_message(device_id, reading, key)), qos=1)
        print(f"Sensor {device_id}: T={reading['temperature']:.1f}C H={reading['humidity']:.1f}% -> {topic}")

        time.sleep(interval)


if __name__ == "__main__":
    if not ENCRYPTION_KEY:
        print("ENCRYPTION_KEY must be set to run the simulator.")
        sys.exit(1)

    shared_key = parse_key(ENCRYPTION_KEY)
    interval = float(sys.argv[1]) if len(sys.argv) > 1 else 10.0

    threads = []
    for device in SENSORS:
        thread = threading.Thread(target=sensor_thread, args=(device, shared_key, interval))
        threads.append(thread)
        thread.start()
