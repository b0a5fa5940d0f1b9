import os, time, random, hashlib

# ---------- rarity ----------
RARITY_NAMES = {
    1: "common",
    2: "rare",
    3: "epic",
    4: "legendary",
    5: "mythic",
}

# Per-mint odds, in percent. Each tier must stay rarer than the one before it.
RARITY_WEIGHTS = {
    1: 50,
    2: 25,
    3: 15,
    4: 7,
    5: 3,
}

# Base stat ranges per tier (attack/defense/speed); hp is drawn from the same
# range scaled by HP_SCALE. Both bounds strictly increase with tier.
_TIER_BASES = {
    1: (8,  14),
    2: (12, 19),
    3: (17, 25),
    4: (23, 32),
    5: (30, 40),
}
HP_SCALE = 5

# Training bump per stat (inclusive bounds)
TRAIN_STAT_BUMP = (1, 3)
TRAIN_HP_BUMP   = (3, 8)

def rarity_name(tier: int) -> str:
    return RARITY_NAMES.get(int(tier), "unknown")

def _tier_bases(tier: int) -> tuple[int, int]:
    return _TIER_BASES.get(tier, _TIER_BASES[1])

def _draw_rarity(rnd: random.Random) -> int:
    r = rnd.random() * sum(RARITY_WEIGHTS.values())
    acc = 0
    for tier in sorted(RARITY_WEIGHTS):
        acc += RARITY_WEIGHTS[tier]
        if r < acc:
            return tier
    return 1

def generate(seed: str) -> dict:
    """
    Rarity tier and base stats for a new pet.

    Pure in `seed`: the same seed always yields the same pet, and every draw
    is positive. Stats vary independently so two pets of one tier differ.
    """
    rarity = _draw_rarity(random.Random(f"{seed}:rar"))
    lo, hi = _tier_bases(rarity)
    rnd = random.Random(f"{seed}:stats")
    return {
        "rarity":  rarity,
        "attack":  rnd.randint(lo, hi),
        "defense": rnd.randint(lo, hi),
        "speed":   rnd.randint(lo, hi),
        "hp":      rnd.randint(lo * HP_SCALE, hi * HP_SCALE),
    }

def train_increments(seed: str) -> dict:
    """Non-negative bump for each stat of one training session."""
    rnd = random.Random(f"{seed}:train")
    return {
        "attack":  rnd.randint(*TRAIN_STAT_BUMP),
        "defense": rnd.randint(*TRAIN_STAT_BUMP),
        "speed":   rnd.randint(*TRAIN_STAT_BUMP),
        "hp":      rnd.randint(*TRAIN_HP_BUMP),
    }

def new_seed(owner: str, pet_id: int) -> str:
    """Production seed source: unpredictable to the caller, unique per mint."""
    h = hashlib.sha256()
    h.update(os.urandom(32))
    h.update(f"{owner}:{pet_id}:{time.time_ns()}".encode())
    return h.hexdigest()
