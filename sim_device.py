"""ESP32-like simulator for the device ledger.

1. Get tokens for the owner and for a verifier identity.
2. Register the device over HTTP (409 = already registered, fine).
3. Submit a temperature reading every few seconds, over HTTP or over MQTT (--mqtt).
4. Verify each HTTP-submitted reading as the second identity.

Requires: requests, paho-mqtt
"""

import argparse, json, random, sys, time

import requests
from paho.mqtt import client as mqtt

API_BASE = 'http://localhost:8000'
BROKER_HOST = 'localhost'
BROKER_PORT = 1883
TENANT = 't0'
INTERVAL = 2  # seconds


def http_post(path, json_body, token=None):
    headers = {'Authorization': f'Bearer {token}'} if token else {}
    r = requests.post(API_BASE + path, json=json_body, headers=headers, timeout=5)
    return r.status_code, r.json()


def get_token(identity):
    status, body = http_post('/auth/token', {'identity': identity})
    if status != 200:
        raise SystemExit(f'[AUTH] token request failed: {body}')
    return body['access_token']


def register_device(device_id, token):
    status, body = http_post('/devices', {'device_id': device_id, 'device_type': 'temperature', 'location': 'lab'}, token)
    if status == 201:
        print('[REG] registered', device_id)
    elif status == 409:
        print('[REG] already registered', device_id)
    else:
        raise SystemExit(f'[REG] failed: {body}')


def reading():
    return f'{24 + random.random() * 3:.2f}'


def run_http(device_id, owner_token, verifier_token):
    while True:
        status, body = http_post('/data', {'device_id': device_id, 'data_type': 'temperature', 'data_value': reading()}, owner_token)
        if status != 201:
            print('[DATA] rejected', body)
        else:
            print('[DATA] accepted', body['data_hash'][:16], body['data_value'])
            status, body = http_post(f"/data/{body['data_hash']}/verify", {}, verifier_token)
            print('[VERIFY]', status, body)
        time.sleep(INTERVAL)


def run_mqtt(device_id, owner_token):
    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
    client.connect(BROKER_HOST, BROKER_PORT, 60)
    client.loop_start()
    topic = f'{TENANT}/devices/{device_id}/data'
    try:
        while True:
            payload = {'token': owner_token, 'data_type': 'temperature', 'data_value': reading()}
            client.publish(topic, json.dumps(payload), qos=1)
            print('[MQTT] sent', payload['data_value'])
            time.sleep(INTERVAL)
    finally:
        client.loop_stop()
        client.disconnect()


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('--device', default='dev-01')
    parser.add_argument('--owner', default='owner-a')
    parser.add_argument('--verifier', default='verifier-b')
    parser.add_argument('--mqtt', action='store_true', help='submit readings over MQTT')
    args = parser.parse_args(argv)

    owner_token = get_token(args.owner)
    register_device(args.device, owner_token)
    try:
        if args.mqtt:
            run_mqtt(args.device, owner_token)
        else:
            run_http(args.device, owner_token, get_token(args.verifier))
    except KeyboardInterrupt:
        print('[MAIN] stopping...')
    return 0


if __name__ == '__main__':
    sys.exit(main())
