"""Payment store fixtures.

Trees follow paydb.kvdb.tree conventions and are meant for the
payments-root-bucket. `pre` is the four-payment scenario before the failed
HTLC migration and `post` the expected result; failing1..failing5 each
break one structural invariant.
"""

from paydb.migrations.migtest import hex_bytes

hash1 = hex_bytes("02acee76ebd53d00824410cf6adecad4f50334dac702bd5a2d3ba01b91709f0e")
hash2 = hex_bytes("62eb3f0a48f954e495d0c14ac63df04a67cefa59dafdbcd3d5046d1f5647840c")
hash3 = hex_bytes("99eb3f0a48f954e495d0c14ac63df04af8cefa59dafdbcd3d5046d1f564784d1")
hash4 = hex_bytes("e312b334ac65ccf950d2411a04f43d7de7143685d87fbf270403433adf2b4961")

payment_id1 = hex_bytes("0000000000000001")
payment_id2 = hex_bytes("0000000000000002")

attempt_id1 = hex_bytes("0000000000000001")
attempt_id2 = hex_bytes("0000000000000002")
attempt_id3 = hex_bytes("0000000000000003")


# Payment hashes must point to sub buckets holding payment data.
failing1 = {
    hash1: "bogus",
}

# payment-htlcs-bucket must be a bucket or missing, never a value.
failing2 = {
    hash1: {
        "payment-htlcs-bucket": "bogus",
    },
}

# Attempt info is a bucket instead of a value.
failing3 = {
    hash1: {
        "payment-creation-info": "aaaa",
        "payment-fail-info": "bbbb",
        "payment-htlcs-bucket": {
            b"ai" + attempt_id2: {},
            b"si" + attempt_id2: "cccc",
            b"fi" + attempt_id2: "dddd",
        },
        "payment-sequence-key": payment_id1,
    },
}

# Settle info is a bucket instead of a value.
failing4 = {
    hash1: {
        "payment-creation-info": "aaaa",
        "payment-fail-info": "bbbb",
        "payment-htlcs-bucket": {
            b"ai" + attempt_id1: "cccc",
            b"si" + attempt_id1: {},
            b"fi" + attempt_id2: "dddd",
        },
        "payment-sequence-key": payment_id1,
    },
}

# Fail info is a bucket instead of a value.
failing5 = {
    hash1: {
        "payment-creation-info": "aaaa",
        "payment-fail-info": "bbbb",
        "payment-htlcs-bucket": {
            b"ai" + attempt_id1: "cccc",
            b"si" + attempt_id1: "dddd",
            b"fi" + attempt_id2: {},
        },
        "payment-sequence-key": payment_id1,
    },
}

pre = {
    # Not settled: only attempt 1 with fail info.
    hash1: {
        "payment-creation-info": "aaaa",
        "payment-fail-info": "bbbb",
        "payment-htlcs-bucket": {
            b"ai" + attempt_id1: "cccc",
            b"fi" + attempt_id1: "dddd",
        },
        "payment-sequence-key": payment_id1,
    },
    # Settled through attempt 3; attempt 2 failed.
    hash2: {
        "payment-creation-info": "eeee",
        "payment-htlcs-bucket": {
            b"ai" + attempt_id2: "ffff",
            b"fi" + attempt_id2: "gggg",
            b"ai" + attempt_id3: "hhhh",
            b"si" + attempt_id3: "iiii",
        },
        "payment-sequence-key": payment_id2,
    },
    # No HTLCs at all.
    hash3: {
        "payment-creation-info": "aaaa",
        "payment-fail-info": "bbbb",
        "payment-sequence-key": payment_id1,
    },
    # Attempt 1 carries settle and fail info at once.
    hash4: {
        "payment-creation-info": "cccc",
        "payment-htlcs-bucket": {
            b"ai" + attempt_id1: "eeee",
            b"si" + attempt_id1: "ffff",
            b"fi" + attempt_id1: "gggg",
        },
        "payment-sequence-key": payment_id2,
    },
}

post = {
    hash1: {
        "payment-creation-info": "aaaa",
        "payment-fail-info": "bbbb",
        "payment-htlcs-bucket": {
            b"ai" + attempt_id1: "cccc",
            b"fi" + attempt_id1: "dddd",
        },
        "payment-sequence-key": payment_id1,
    },
    hash2: {
        "payment-creation-info": "eeee",
        "payment-htlcs-bucket": {
            b"ai" + attempt_id3: "hhhh",
            b"si" + attempt_id3: "iiii",
        },
        "payment-sequence-key": payment_id2,
    },
    hash3: {
        "payment-creation-info": "aaaa",
        "payment-fail-info": "bbbb",
        "payment-sequence-key": payment_id1,
    },
    hash4: {
        "payment-creation-info": "cccc",
        "payment-htlcs-bucket": {},
        "payment-sequence-key": payment_id2,
    },
}
