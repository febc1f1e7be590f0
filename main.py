import asyncio
import logging
import json
from typing import Any, Dict, Optional
from pathlib import Path
import argparse
import sys

from config.config import SystemConfig, load_config
from legal_proof_system import LegalProofSystem, run_selftest
from utils.utils import setup_logging, save_results, format_duration, validate_environment
from zk.backend import Proof, VerifyingKey
from zk.errors import ZKError

logger = logging.getLogger(__name__)


def _read_json(path: str) -> Dict[str, Any]:
    with open(path, 'r') as f:
        return json.load(f)


def cmd_circuits(config: SystemConfig, args) -> int:
    system = LegalProofSystem(config)
    try:
        for circuit_id, circuit in sorted(system.circuits.items()):
            cs = circuit.constraint_system()
            print(f"{circuit_id}  ({circuit.version})")
            print(f"  signals: {cs.num_signals}  constraints: {cs.num_constraints}")
            for signal in circuit.signals():
                print(f"    {signal['role']:<7} {signal['visibility']:<8} {signal['name']}")
            print(f"  public signal order: {', '.join(circuit.public_signal_names())}")
    finally:
        system.close()
    return 0


async def _prove(config: SystemConfig, circuit_id: str, inputs: Dict[str, Any],
                 hints: Optional[Dict[str, int]]) -> Dict[str, Any]:
    system = LegalProofSystem(config)
    try:
        artifact = await system.prove(circuit_id, inputs, hints)
        vk = system.verifying_key(circuit_id)
        return {
            **artifact.to_dict(),
            'verifying_key': vk.to_dict(),
        }
    finally:
        system.close()


def cmd_prove(config: SystemConfig, args) -> int:
    data = _read_json(args.input)
    inputs = data.get('inputs', data)
    hints = data.get('hints') if 'inputs' in data else None

    result = asyncio.run(_prove(config, args.circuit, inputs, hints))
    output = json.dumps(result, indent=2)
    if args.output:
        Path(args.output).write_text(output)
        print(f"Proof written to {args.output}")
    else:
        print(output)
    for name, value in result['outputs'].items():
        logger.info(f"{args.circuit}.{name} = {value}")
    return 0


async def _verify(config: SystemConfig, proof: Proof, vk: VerifyingKey) -> bool:
    system = LegalProofSystem(config)
    try:
        current = system.circuits.get(proof.circuit_id)
        if current is None or current.version != vk.version:
            logger.warning(f"Verifying key {vk.version} does not match the configured circuit")
            return False
        return await system.verify(proof, proof.public_signals, vk)
    finally:
        system.close()


def cmd_verify(config: SystemConfig, args) -> int:
    data = _read_json(args.proof)
    proof = Proof.from_dict(data['proof'])
    if args.vkey:
        vk = VerifyingKey.from_dict(_read_json(args.vkey))
    else:
        logger.warning("No --vkey given; trusting the verifying key embedded in the proof file")
        vk = VerifyingKey.from_dict(data['verifying_key'])

    is_valid = asyncio.run(_verify(config, proof, vk))
    print("OK" if is_valid else "INVALID")
    return 0 if is_valid else 1


def cmd_selftest(config: SystemConfig, args) -> int:
    print("=" * 80)
    print("VERIFIABLE LEGAL FINANCIAL COMPUTATIONS - SELF TEST")
    print(f"   Backend: {config.zk_config.backend}")
    print("=" * 80)

    results = asyncio.run(run_selftest(config))

    for circuit_id, proof in results['proofs'].items():
        print(f"\n{circuit_id}:")
        for name, value in proof['outputs'].items():
            print(f"  {name}: {value}")
        print(f"  witness: {format_duration(proof['witness_time'])}  proving: {format_duration(proof['proving_time'])}")

    for circuit_id, error in results['failures'].items():
        print(f"\n{circuit_id}: FAILED ({error})")

    print("\nIntegrity Checks:")
    for check, passed in results['integrity_checks'].items():
        status = "PASSED" if passed else "FAILED"
        print(f"  {check}: {status}")

    if config.enable_benchmarking:
        print("\n" + results['performance_report'])
        report_path = config.results_dir / "selftest_report.json"
        save_results(results, report_path)
        print(f"\nFull results saved to: {report_path}")

    return 0 if results['integrity_checks'].get('all_checks_passed') else 1


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Verifiable legal financial computations')
    parser.add_argument('--config', type=str,
                        default='config.yaml', help='Config file path')
    parser.add_argument('--backend', choices=['attestation', 'snarkjs'],
                        help='Override the configured proof backend')
    parser.add_argument('--log-level', type=str, help='Override the configured log level')

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('circuits', help='List circuits, signals and constraint counts')

    prove = subparsers.add_parser('prove', help='Prove one computation')
    prove.add_argument('circuit', help='Circuit id')
    prove.add_argument('--input', required=True, help='JSON file with inputs')
    prove.add_argument('--output', help='Where to write the proof JSON')

    verify = subparsers.add_parser('verify', help='Verify a proof file')
    verify.add_argument('proof', help='Proof JSON produced by prove')
    verify.add_argument('--vkey', help='Trusted verifying key JSON')

    subparsers.add_parser('selftest', help='Prove and verify the worked examples')

    args = parser.parse_args(argv)

    config = load_config(Path(args.config))
    if args.backend:
        config.zk_config.backend = args.backend
    setup_logging(args.log_level or config.log_level, config.log_dir / "legal_proofs.log")

    issues = validate_environment(config.zk_config.backend)
    for issue in issues:
        logger.warning(issue)

    commands = {
        'circuits': cmd_circuits,
        'prove': cmd_prove,
        'verify': cmd_verify,
        'selftest': cmd_selftest,
    }
    try:
        return commands[args.command](config, args)
    except ZKError as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(f"Error: {type(e).__name__}: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
