from bandit.environment import BanditConfig, BanditEnvironment
from policies.arm_advisor import ArmDef, QValueAdvisor


def _arms():
    return [ArmDef(id=0, name="Left"), ArmDef(id=1, name="Middle"), ArmDef(id=2, name="Right")]


def test_advisor_updates_toward_reward():
    advisor = QValueAdvisor(_arms(), learning_rate=0.1)
    assert advisor.update(2, 1) == 0.1
    advisor.update(2, 1)
    advisor.update(0, 0)
    assert advisor.best_arm().id == 2
    assert advisor.q_values()[0] == 0.0


def test_advisor_explores_with_probability_epsilon():
    greedy = QValueAdvisor(_arms(), exploration_rate=0.0, seed=1)
    greedy.update(1, 1)
    assert all(greedy.recommend().id == 1 for _ in range(20))
    explorer = QValueAdvisor(_arms(), exploration_rate=1.0, seed=1)
    assert explorer.recommend() is None


def test_environment_optimal_arm_and_pull():
    env = BanditEnvironment(BanditConfig(reward_probabilities=[0.3, 0.5, 0.7]), seed=3)
    assert env.optimal_arm == 2
    described = env.describe()
    assert described["optimalArm"] == 2
    assert [a["name"] for a in described["arms"]] == ["Left", "Middle", "Right"]
    rewards = [env.pull(2) for _ in range(500)]
    assert set(rewards) <= {0, 1}
    assert 0.6 < sum(rewards) / len(rewards) < 0.8


def test_optimal_arm_ties_pick_lowest_index():
    env = BanditEnvironment(BanditConfig(reward_probabilities=[0.6, 0.6, 0.2]))
    assert env.optimal_arm == 0
