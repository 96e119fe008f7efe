"""Simple example: issue a CA and a server certificate, then verify the chain."""
from pathlib import Path

from tlscert.core.chain import verify_certificate_chain
from tlscert.core.issuance import create_ca_cert, create_cert
from tlscert.core.specs import AuthoritySpec, LeafSpec
from tlscert.core.subject import Subject
from tlscert.storage.files import write_material


def demo():
	out = Path("example_pki")

	ca = create_ca_cert(AuthoritySpec(serial=1, valid_for_years=1, subject=Subject(common_name="Example CA", country="US")))
	write_material(ca, out / "ca.key", out / "ca.crt")

	leaf = create_cert(
		LeafSpec(serial=2, valid_for_years=1, subject=Subject(common_name="www.example.test"), dns_names=["www.example.test"]),
		ca.private_key,
		ca.certificate,
	)
	write_material(leaf, out / "www.key", out / "www.crt")

	result = verify_certificate_chain(leaf.certificate, ca.certificate)
	print("Chain ok:", bool(result.paths))
	for line in result.describe():
		print(" ", line)


if __name__ == "__main__":
	demo()
